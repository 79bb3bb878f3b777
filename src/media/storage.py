from collections.abc import Sequence
from typing import Self
from urllib.parse import unquote

import httpx

from src.media.interface import StorageBackend


class SupabaseStorage(StorageBackend):
    """Storage API of the hosted backend, one public bucket."""

    CACHE_CONTROL = "3600"

    def __init__(
        self, client: httpx.AsyncClient, base_url: str, api_key: str, bucket: str
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._bucket = bucket

    @classmethod
    def create(
        cls, client: httpx.AsyncClient, base_url: str, api_key: str, bucket: str
    ) -> Self:
        return cls(client, base_url, api_key, bucket)

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def public_prefix(self) -> str:
        return f"/storage/v1/object/public/{self._bucket}/"

    def _headers(self) -> dict[str, str]:
        return {"apikey": self._api_key, "Authorization": f"Bearer {self._api_key}"}

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        response = await self._client.post(
            f"{self._base_url}/storage/v1/object/{self._bucket}/{key}",
            content=data,
            headers={
                **self._headers(),
                "Content-Type": content_type,
                "cache-control": self.CACHE_CONTROL,
                "x-upsert": "false",
            },
        )
        response.raise_for_status()
        return key

    def public_url(self, key: str) -> str:
        return f"{self._base_url}{self.public_prefix}{key}"

    def key_from_public_url(self, url: str) -> str | None:
        _, found, key = url.partition(self.public_prefix)
        key = unquote(key.split("?", 1)[0])
        if not found or not key:
            return None
        return key

    async def remove(self, keys: Sequence[str]) -> None:
        response = await self._client.request(
            "DELETE",
            f"{self._base_url}/storage/v1/object/{self._bucket}",
            json={"prefixes": list(keys)},
            headers=self._headers(),
        )
        response.raise_for_status()

    async def list_buckets(self) -> list[str]:
        response = await self._client.get(
            f"{self._base_url}/storage/v1/bucket", headers=self._headers()
        )
        response.raise_for_status()
        return [bucket["name"] for bucket in response.json()]
