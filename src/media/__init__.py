import os
from collections.abc import AsyncGenerator, Sequence

import httpx
from fastapi import UploadFile

from src.base.resilience import HTTP_TIMEOUT_SECONDS
from src.media.interface import StorageBackend, UploadedFile
from src.media.storage import SupabaseStorage

STORAGE_BUCKET = os.environ.get("GATEWORKS_STORAGE_BUCKET", "gateworks-storage")


def create_storage(client: httpx.AsyncClient) -> StorageBackend:
    """Create the object store adapter using the privileged service key."""
    return SupabaseStorage.create(
        client,
        base_url=os.environ.get("GATEWORKS_SUPABASE_URL", ""),
        api_key=os.environ.get("GATEWORKS_SUPABASE_SERVICE_KEY", ""),
        bucket=STORAGE_BUCKET,
    )


async def get_storage() -> AsyncGenerator[StorageBackend]:
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        yield create_storage(client)


async def read_uploads(files: Sequence[UploadFile]) -> list[UploadedFile]:
    return [
        UploadedFile(
            filename=f.filename or "upload",
            content_type=f.content_type or "",
            data=await f.read(),
        )
        for f in files
    ]
