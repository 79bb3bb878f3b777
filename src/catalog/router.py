import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Capability, require_capability
from src.base.dependencies import get_or_404, get_session
from src.base.models import BaseDbModel
from src.catalog.models import Product, ProductCategory, Service, Work
from src.catalog.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ImageBatchResponse,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
    WorkCreate,
    WorkResponse,
    WorkUpdate,
)
from src.media import get_storage, read_uploads
from src.media.interface import ImageFolder, StorageBackend
from src.media.pipeline import (
    delete_image,
    discard_on_error,
    upload_image,
    upload_images,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    dependencies=[Depends(require_capability(Capability.MANAGE_CATALOG))],
)

MAX_IMAGES_PER_UPLOAD = 3


async def _list(session: AsyncSession, model: type[BaseDbModel]) -> list:
    stmt = select(model).order_by(model.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def _create(session: AsyncSession, entity: BaseDbModel) -> BaseDbModel:
    session.add(entity)
    await session.flush()
    return entity


async def _update(session: AsyncSession, entity: BaseDbModel, changes: dict) -> None:
    for key, value in changes.items():
        setattr(entity, key, value)
    await session.flush()


async def _attach_images(
    entity: BaseDbModel,
    attribute: str,
    files: list[UploadFile],
    folder: ImageFolder,
    storage: StorageBackend,
    session: AsyncSession,
) -> ImageBatchResponse:
    """Upload a batch and keep whatever made it; report the rest."""
    uploads = await read_uploads(files)
    if not uploads:
        raise HTTPException(status_code=400, detail="No files provided")

    result = await upload_images(
        uploads, folder, storage, entity_id=entity.id, max_images=MAX_IMAGES_PER_UPLOAD
    )
    if not result.urls:
        raise HTTPException(status_code=400, detail={"errors": result.errors})

    async with discard_on_error(result.urls, storage):
        setattr(entity, attribute, [*getattr(entity, attribute), *result.urls])
        await session.flush()
    return ImageBatchResponse(urls=result.urls, errors=result.errors)


async def _detach_image(
    entity: BaseDbModel,
    attribute: str,
    url: str,
    storage: StorageBackend,
    session: AsyncSession,
) -> None:
    images: list[str] = getattr(entity, attribute)
    if url not in images:
        raise HTTPException(status_code=404, detail="Image not found")

    if not await delete_image(url, storage):
        logger.warning("Image %s kept in storage, detaching it anyway", url)

    setattr(entity, attribute, [image for image in images if image != url])
    await session.flush()


# Categories


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(session: AsyncSession = Depends(get_session)) -> list:
    return await _list(session, ProductCategory)


@router.post("/categories", response_model=CategoryResponse, status_code=201)
async def create_category(
    body: CategoryCreate, session: AsyncSession = Depends(get_session)
) -> BaseDbModel:
    return await _create(session, ProductCategory(**body.model_dump()))


@router.get("/categories/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: UUID, session: AsyncSession = Depends(get_session)
) -> ProductCategory:
    return await get_or_404(session, ProductCategory, category_id, "Category")


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: UUID,
    body: CategoryUpdate,
    session: AsyncSession = Depends(get_session),
) -> ProductCategory:
    category = await get_or_404(session, ProductCategory, category_id, "Category")
    await _update(session, category, body.model_dump(exclude_unset=True))
    return category


@router.delete("/categories/{category_id}", status_code=204)
async def delete_category(
    category_id: UUID, session: AsyncSession = Depends(get_session)
) -> None:
    category = await get_or_404(session, ProductCategory, category_id, "Category")
    await session.delete(category)


@router.put("/categories/{category_id}/image", response_model=CategoryResponse)
async def set_category_image(
    category_id: UUID,
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
) -> ProductCategory:
    """Replace the category image, removing the previous one from storage."""
    category = await get_or_404(session, ProductCategory, category_id, "Category")

    [upload] = await read_uploads([file])
    result = await upload_image(upload, ImageFolder.PRODUCTS, storage, category.id)
    if result.url is None:
        raise HTTPException(status_code=400, detail=result.error)

    previous = category.image_url
    async with discard_on_error([result.url], storage):
        category.image_url = result.url
        await session.flush()
    if previous and not await delete_image(previous, storage):
        logger.warning("Previous category image %s kept in storage", previous)
    return category


@router.delete("/categories/{category_id}/image", response_model=CategoryResponse)
async def remove_category_image(
    category_id: UUID,
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
) -> ProductCategory:
    category = await get_or_404(session, ProductCategory, category_id, "Category")
    if category.image_url is None:
        raise HTTPException(status_code=404, detail="Image not found")

    if not await delete_image(category.image_url, storage):
        logger.warning(
            "Image %s kept in storage, detaching it anyway", category.image_url
        )
    category.image_url = None
    await session.flush()
    return category


# Products


@router.get("/products", response_model=list[ProductResponse])
async def list_products(session: AsyncSession = Depends(get_session)) -> list:
    return await _list(session, Product)


@router.post("/products", response_model=ProductResponse, status_code=201)
async def create_product(
    body: ProductCreate, session: AsyncSession = Depends(get_session)
) -> BaseDbModel:
    if body.category_id is not None:
        await get_or_404(session, ProductCategory, body.category_id, "Category")
    return await _create(session, Product(**body.model_dump()))


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID, session: AsyncSession = Depends(get_session)
) -> Product:
    return await get_or_404(session, Product, product_id, "Product")


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    body: ProductUpdate,
    session: AsyncSession = Depends(get_session),
) -> Product:
    product = await get_or_404(session, Product, product_id, "Product")
    changes = body.model_dump(exclude_unset=True)
    if changes.get("category_id") is not None:
        await get_or_404(session, ProductCategory, changes["category_id"], "Category")
    await _update(session, product, changes)
    return product


@router.delete("/products/{product_id}", status_code=204)
async def delete_product(
    product_id: UUID, session: AsyncSession = Depends(get_session)
) -> None:
    product = await get_or_404(session, Product, product_id, "Product")
    await session.delete(product)


@router.post("/products/{product_id}/images", response_model=ImageBatchResponse)
async def add_product_images(
    product_id: UUID,
    files: list[UploadFile] = File(...),
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
) -> ImageBatchResponse:
    product = await get_or_404(session, Product, product_id, "Product")
    return await _attach_images(
        product, "images_url", files, ImageFolder.PRODUCTS, storage, session
    )


@router.delete("/products/{product_id}/images", response_model=ProductResponse)
async def remove_product_image(
    product_id: UUID,
    url: str,
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
) -> Product:
    product = await get_or_404(session, Product, product_id, "Product")
    await _detach_image(product, "images_url", url, storage, session)
    return product


# Services


@router.get("/services", response_model=list[ServiceResponse])
async def list_services(session: AsyncSession = Depends(get_session)) -> list:
    return await _list(session, Service)


@router.post("/services", response_model=ServiceResponse, status_code=201)
async def create_service(
    body: ServiceCreate, session: AsyncSession = Depends(get_session)
) -> BaseDbModel:
    return await _create(session, Service(**body.model_dump()))


@router.get("/services/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: UUID, session: AsyncSession = Depends(get_session)
) -> Service:
    return await get_or_404(session, Service, service_id, "Service")


@router.patch("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: UUID,
    body: ServiceUpdate,
    session: AsyncSession = Depends(get_session),
) -> Service:
    service = await get_or_404(session, Service, service_id, "Service")
    await _update(session, service, body.model_dump(exclude_unset=True))
    return service


@router.delete("/services/{service_id}", status_code=204)
async def delete_service(
    service_id: UUID, session: AsyncSession = Depends(get_session)
) -> None:
    service = await get_or_404(session, Service, service_id, "Service")
    await session.delete(service)


# Works


@router.get("/works", response_model=list[WorkResponse])
async def list_works(session: AsyncSession = Depends(get_session)) -> list:
    return await _list(session, Work)


@router.post("/works", response_model=WorkResponse, status_code=201)
async def create_work(
    body: WorkCreate, session: AsyncSession = Depends(get_session)
) -> BaseDbModel:
    return await _create(session, Work(**body.model_dump()))


@router.get("/works/{work_id}", response_model=WorkResponse)
async def get_work(work_id: UUID, session: AsyncSession = Depends(get_session)) -> Work:
    return await get_or_404(session, Work, work_id, "Work")


@router.patch("/works/{work_id}", response_model=WorkResponse)
async def update_work(
    work_id: UUID,
    body: WorkUpdate,
    session: AsyncSession = Depends(get_session),
) -> Work:
    work = await get_or_404(session, Work, work_id, "Work")
    await _update(session, work, body.model_dump(exclude_unset=True))
    return work


@router.delete("/works/{work_id}", status_code=204)
async def delete_work(
    work_id: UUID, session: AsyncSession = Depends(get_session)
) -> None:
    work = await get_or_404(session, Work, work_id, "Work")
    await session.delete(work)


@router.post("/works/{work_id}/images", response_model=ImageBatchResponse)
async def add_work_images(
    work_id: UUID,
    files: list[UploadFile] = File(...),
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
) -> ImageBatchResponse:
    work = await get_or_404(session, Work, work_id, "Work")
    return await _attach_images(
        work, "image_urls", files, ImageFolder.WORKS, storage, session
    )


@router.delete("/works/{work_id}/images", response_model=WorkResponse)
async def remove_work_image(
    work_id: UUID,
    url: str,
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
) -> Work:
    work = await get_or_404(session, Work, work_id, "Work")
    await _detach_image(work, "image_urls", url, storage, session)
    return work
