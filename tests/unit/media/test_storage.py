import json

import httpx
import pytest

from src.media.storage import SupabaseStorage

BASE_URL = "https://project.supabase.test"


def _storage(handler) -> SupabaseStorage:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseStorage.create(client, BASE_URL, "service-key", "gateworks-storage")


class TestSupabaseStorage:
    async def test_upload_posts_object(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"Key": "gateworks-storage/works/a.webp"})

        key = await _storage(handler).upload("works/a.webp", b"data", "image/webp")

        assert key == "works/a.webp"
        [request] = seen
        assert request.method == "POST"
        assert request.url.path == "/storage/v1/object/gateworks-storage/works/a.webp"
        assert request.headers["content-type"] == "image/webp"
        assert request.headers["cache-control"] == "3600"
        assert request.headers["x-upsert"] == "false"
        assert request.headers["authorization"] == "Bearer service-key"
        assert request.content == b"data"

    async def test_upload_raises_on_error(self) -> None:
        storage = _storage(lambda request: httpx.Response(500))

        with pytest.raises(httpx.HTTPStatusError):
            await storage.upload("works/a.webp", b"data", "image/webp")

    def test_public_url_round_trips_to_key(self) -> None:
        storage = _storage(lambda request: httpx.Response(200))

        url = storage.public_url("products/1/x.webp")

        assert url == (
            f"{BASE_URL}/storage/v1/object/public/gateworks-storage/products/1/x.webp"
        )
        assert storage.key_from_public_url(url) == "products/1/x.webp"

    def test_key_from_foreign_url(self) -> None:
        storage = _storage(lambda request: httpx.Response(200))

        assert storage.key_from_public_url("https://cdn.test/img.webp") is None
        assert (
            storage.key_from_public_url(
                f"{BASE_URL}/storage/v1/object/public/gateworks-storage/"
            )
            is None
        )

    def test_key_ignores_query_and_unquotes(self) -> None:
        storage = _storage(lambda request: httpx.Response(200))
        url = storage.public_url("works/my%20photo.webp") + "?t=1"

        assert storage.key_from_public_url(url) == "works/my photo.webp"

    async def test_remove_sends_prefixes(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        await _storage(handler).remove(["a.webp", "b.webp"])

        [request] = seen
        assert request.method == "DELETE"
        assert request.url.path == "/storage/v1/object/gateworks-storage"
        assert json.loads(request.content) == {"prefixes": ["a.webp", "b.webp"]}

    async def test_list_buckets(self) -> None:
        storage = _storage(
            lambda request: httpx.Response(
                200, json=[{"name": "gateworks-storage"}, {"name": "other"}]
            )
        )

        assert await storage.list_buckets() == ["gateworks-storage", "other"]
