from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthUser
from src.catalog.models import Product, ProductCategory, Work
from src.catalog.router import router
from tests.helpers import FakeStorage, build_test_app, image_bytes


@pytest.fixture
def app(
    db_session: AsyncSession, admin_user: AuthUser, storage: FakeStorage
) -> FastAPI:
    return build_test_app(
        router, session=db_session, user=admin_user, storage=storage
    )


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def category(db_session: AsyncSession) -> ProductCategory:
    c = ProductCategory(
        idname="motores-puertas-abatibles",
        name="Motores para puertas abatibles",
        items=["Brazo articulado"],
    )
    db_session.add(c)
    await db_session.flush()
    return c


@pytest.fixture
async def product(db_session: AsyncSession, category: ProductCategory) -> Product:
    p = Product(
        idname="bulldozer-850",
        name="BULLDOZER 850",
        category_id=category.id,
        specifications={"Potencia": "400W"},
        features=["Control remoto incluido"],
    )
    db_session.add(p)
    await db_session.flush()
    return p


@pytest.fixture
async def work(db_session: AsyncSession) -> Work:
    w = Work(idname="condominio-sur", name="Condominio Sur", year=2023)
    db_session.add(w)
    await db_session.flush()
    return w


def _png(name: str = "photo.png") -> tuple[str, bytes, str]:
    return (name, image_bytes(), "image/png")


class TestCategories:
    async def test_create(self, client: httpx.AsyncClient) -> None:
        resp = await client.post(
            "/admin/categories",
            json={"idname": "motores-garaje", "name": "Motores de garaje"},
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["items"] == []
        assert data["image_url"] is None

    async def test_rejects_invalid_slug(self, client: httpx.AsyncClient) -> None:
        resp = await client.post(
            "/admin/categories", json={"idname": "Not A Slug", "name": "X"}
        )

        assert resp.status_code == 422

    async def test_update(
        self, client: httpx.AsyncClient, category: ProductCategory
    ) -> None:
        resp = await client.patch(
            f"/admin/categories/{category.id}", json={"description": "Swing gates"}
        )

        assert resp.status_code == 200
        assert resp.json()["description"] == "Swing gates"
        assert resp.json()["name"] == "Motores para puertas abatibles"

    async def test_set_and_replace_image(
        self,
        client: httpx.AsyncClient,
        category: ProductCategory,
        storage: FakeStorage,
    ) -> None:
        first = await client.put(
            f"/admin/categories/{category.id}/image", files={"file": _png()}
        )
        second = await client.put(
            f"/admin/categories/{category.id}/image", files={"file": _png()}
        )

        assert first.status_code == second.status_code == 200
        assert first.json()["image_url"] != second.json()["image_url"]
        assert len(storage.objects) == 1

    async def test_failed_save_removes_new_image(
        self,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        category: ProductCategory,
        storage: FakeStorage,
    ) -> None:
        failing_flush = AsyncMock(
            side_effect=OperationalError("UPDATE", {}, Exception("locked"))
        )

        with patch.object(db_session, "flush", failing_flush):
            with pytest.raises(OperationalError):
                await client.put(
                    f"/admin/categories/{category.id}/image", files={"file": _png()}
                )

        assert storage.objects == {}

    async def test_rejects_non_image(
        self, client: httpx.AsyncClient, category: ProductCategory
    ) -> None:
        resp = await client.put(
            f"/admin/categories/{category.id}/image",
            files={"file": ("a.txt", b"text", "text/plain")},
        )

        assert resp.status_code == 400
        assert resp.json()["detail"] == "The file must be an image"

    async def test_remove_image(
        self,
        client: httpx.AsyncClient,
        category: ProductCategory,
        storage: FakeStorage,
    ) -> None:
        await client.put(
            f"/admin/categories/{category.id}/image", files={"file": _png()}
        )

        resp = await client.delete(f"/admin/categories/{category.id}/image")

        assert resp.status_code == 200
        assert resp.json()["image_url"] is None
        assert storage.objects == {}


class TestProducts:
    async def test_create(
        self, client: httpx.AsyncClient, category: ProductCategory
    ) -> None:
        resp = await client.post(
            "/admin/products",
            json={
                "idname": "fox-1000-pro",
                "name": "FOX 1000 PRO",
                "category_id": str(category.id),
                "specifications": {"Garantía": "2 años"},
            },
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["specifications"] == {"Garantía": "2 años"}
        assert data["images_url"] == []

    async def test_create_with_unknown_category(
        self, client: httpx.AsyncClient
    ) -> None:
        resp = await client.post(
            "/admin/products",
            json={"idname": "x", "name": "X", "category_id": str(uuid4())},
        )

        assert resp.status_code == 404
        assert resp.json() == {"detail": "Category not found"}

    async def test_list_newest_first(
        self, client: httpx.AsyncClient, product: Product
    ) -> None:
        await client.post("/admin/products", json={"idname": "newer", "name": "Newer"})

        resp = await client.get("/admin/products")

        assert [p["idname"] for p in resp.json()] == ["newer", "bulldozer-850"]

    async def test_get_404(self, client: httpx.AsyncClient) -> None:
        resp = await client.get(f"/admin/products/{uuid4()}")

        assert resp.status_code == 404
        assert resp.json() == {"detail": "Product not found"}

    async def test_attach_images(
        self, client: httpx.AsyncClient, product: Product, storage: FakeStorage
    ) -> None:
        resp = await client.post(
            f"/admin/products/{product.id}/images",
            files=[("files", _png("a.png")), ("files", _png("b.png"))],
        )

        assert resp.status_code == 200
        assert len(resp.json()["urls"]) == 2
        assert resp.json()["errors"] == []
        product_resp = await client.get(f"/admin/products/{product.id}")
        assert product_resp.json()["images_url"] == resp.json()["urls"]

    async def test_attach_keeps_partial_success(
        self, client: httpx.AsyncClient, product: Product
    ) -> None:
        resp = await client.post(
            f"/admin/products/{product.id}/images",
            files=[("files", _png()), ("files", ("a.txt", b"x", "text/plain"))],
        )

        assert resp.status_code == 200
        assert len(resp.json()["urls"]) == 1
        assert resp.json()["errors"] == ["Image 2: The file must be an image"]

    async def test_attach_more_than_three(
        self, client: httpx.AsyncClient, product: Product, storage: FakeStorage
    ) -> None:
        resp = await client.post(
            f"/admin/products/{product.id}/images",
            files=[("files", _png(f"{i}.png")) for i in range(4)],
        )

        assert resp.status_code == 400
        assert resp.json()["detail"]["errors"] == ["A maximum of 3 images is allowed"]
        assert storage.objects == {}

    async def test_detach_image(
        self, client: httpx.AsyncClient, product: Product, storage: FakeStorage
    ) -> None:
        upload = await client.post(
            f"/admin/products/{product.id}/images", files=[("files", _png())]
        )
        [url] = upload.json()["urls"]

        resp = await client.delete(
            f"/admin/products/{product.id}/images", params={"url": url}
        )

        assert resp.status_code == 200
        assert resp.json()["images_url"] == []
        assert storage.objects == {}

    async def test_delete(self, client: httpx.AsyncClient, product: Product) -> None:
        resp = await client.delete(f"/admin/products/{product.id}")

        assert resp.status_code == 204


class TestServices:
    async def test_crud(self, client: httpx.AsyncClient) -> None:
        created = await client.post(
            "/admin/services",
            json={"name": "Instalación", "features": ["Garantía de 1 año"]},
        )
        assert created.status_code == 201
        service_id = created.json()["id"]

        updated = await client.patch(
            f"/admin/services/{service_id}", json={"description": "Puertas"}
        )
        assert updated.json()["description"] == "Puertas"
        assert updated.json()["features"] == ["Garantía de 1 año"]

        listed = await client.get("/admin/services")
        assert [s["id"] for s in listed.json()] == [service_id]

        deleted = await client.delete(f"/admin/services/{service_id}")
        assert deleted.status_code == 204
        assert (await client.get(f"/admin/services/{service_id}")).status_code == 404


class TestWorks:
    async def test_create(self, client: httpx.AsyncClient) -> None:
        resp = await client.post(
            "/admin/works",
            json={
                "idname": "edificio-central",
                "name": "Edificio Central",
                "year": 2022,
                "tags": ["Residencial"],
                "results": ["Acceso automatizado"],
            },
        )

        assert resp.status_code == 201
        assert resp.json()["tags"] == ["Residencial"]
        assert resp.json()["image_urls"] == []

    async def test_attach_images_under_works_folder(
        self, client: httpx.AsyncClient, work: Work, storage: FakeStorage
    ) -> None:
        resp = await client.post(
            f"/admin/works/{work.id}/images", files=[("files", _png())]
        )

        assert resp.status_code == 200
        [key] = storage.objects
        assert key.startswith(f"works/{work.id}/")

    async def test_update_year_validation(
        self, client: httpx.AsyncClient, work: Work
    ) -> None:
        resp = await client.patch(f"/admin/works/{work.id}", json={"year": 12})

        assert resp.status_code == 422

    async def test_rejects_null_slug(
        self, client: httpx.AsyncClient, work: Work
    ) -> None:
        resp = await client.patch(f"/admin/works/{work.id}", json={"idname": None})

        assert resp.status_code == 422

    async def test_null_clears_year(
        self, client: httpx.AsyncClient, work: Work
    ) -> None:
        resp = await client.patch(f"/admin/works/{work.id}", json={"year": None})

        assert resp.status_code == 200
        assert resp.json()["year"] is None


class TestAuthorization:
    async def test_member_is_forbidden(
        self, db_session: AsyncSession, member_user: AuthUser
    ) -> None:
        app = build_test_app(router, session=db_session, user=member_user)
        transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.post("/admin/services", json={"name": "X"})

        assert resp.status_code == 403
