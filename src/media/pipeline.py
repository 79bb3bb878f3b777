"""Validate, normalize and store uploaded images.

Every image is re-encoded to WebP at a bounded width before it reaches the
object store, whatever format it arrived in. Failures are reported as
results; nothing here raises for a bad file or an unavailable store.
"""

from __future__ import annotations

import asyncio
import io
import logging
import secrets
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from uuid import UUID

from PIL import Image, ImageOps, UnidentifiedImageError

from src.base.resilience import (
    FailureKind,
    RetryPolicy,
    call_with_retry,
    failure_kind,
)
from src.media.interface import (
    BatchUploadResult,
    ImageFolder,
    ImageUploadResult,
    StorageBackend,
    UploadedFile,
)

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_WIDTH = 1200
DEFAULT_QUALITY = 85
WEBP_METHOD = 6
OUTPUT_CONTENT_TYPE = "image/webp"
OUTPUT_EXTENSION = "webp"

STORAGE_POLICY = RetryPolicy.from_env("GATEWORKS_STORAGE_MAX_ATTEMPTS")


def validate_image(file: UploadedFile) -> str | None:
    """Return the reason `file` is rejected, or None if it is acceptable."""
    if not file.content_type.startswith("image/"):
        return "The file must be an image"
    if file.size > MAX_IMAGE_BYTES:
        return "The image must not exceed 10MB"
    return None


def optimize_image(
    data: bytes, max_width: int = DEFAULT_MAX_WIDTH, quality: int = DEFAULT_QUALITY
) -> bytes:
    with Image.open(io.BytesIO(data)) as source:
        image = ImageOps.exif_transpose(source)

        if image.width > max_width:
            height = max(1, round(image.height * max_width / image.width))
            image = image.resize((max_width, height), Image.Resampling.LANCZOS)

        if image.mode not in ("RGB", "RGBA"):
            has_alpha = image.mode in ("LA", "PA") or (
                image.mode == "P" and "transparency" in image.info
            )
            image = image.convert("RGBA" if has_alpha else "RGB")

        output = io.BytesIO()
        image.save(output, "WEBP", quality=quality, method=WEBP_METHOD)
        return output.getvalue()


def build_object_key(folder: ImageFolder, entity_id: UUID | str | None = None) -> str:
    name = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}.{OUTPUT_EXTENSION}"
    if entity_id:
        return f"{folder.value}/{entity_id}/{name}"
    return f"{folder.value}/{name}"


async def upload_image(
    file: UploadedFile,
    folder: ImageFolder,
    storage: StorageBackend,
    entity_id: UUID | str | None = None,
    *,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: int = DEFAULT_QUALITY,
    policy: RetryPolicy = STORAGE_POLICY,
) -> ImageUploadResult:
    error = validate_image(file)
    if error is not None:
        return ImageUploadResult.failed(error, FailureKind.VALIDATION)

    try:
        optimized = await asyncio.to_thread(
            optimize_image, file.data, max_width, quality
        )
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ):
        logger.warning("Could not decode image %s", file.filename, exc_info=True)
        return ImageUploadResult.failed(
            "The image could not be processed", FailureKind.VALIDATION
        )

    key = build_object_key(folder, entity_id)
    try:
        stored_key = await call_with_retry(
            lambda: storage.upload(key, optimized, OUTPUT_CONTENT_TYPE),
            policy,
            description=f"upload of {key}",
        )
    except Exception as exc:
        logger.exception("Uploading %s to storage failed", key)
        return ImageUploadResult.failed("Error uploading the image", failure_kind(exc))

    return ImageUploadResult(success=True, url=storage.public_url(stored_key))


async def upload_images(
    files: Sequence[UploadedFile],
    folder: ImageFolder,
    storage: StorageBackend,
    entity_id: UUID | str | None = None,
    max_images: int = 3,
) -> BatchUploadResult:
    """Upload files concurrently; collects every success and every failure."""
    if len(files) > max_images:
        return BatchUploadResult(
            success=False, errors=[f"A maximum of {max_images} images is allowed"]
        )

    results = await asyncio.gather(
        *(upload_image(f, folder, storage, entity_id) for f in files)
    )

    urls: list[str] = []
    errors: list[str] = []
    for index, result in enumerate(results, start=1):
        if result.success and result.url:
            urls.append(result.url)
        else:
            errors.append(f"Image {index}: {result.error or 'Unknown error'}")

    return BatchUploadResult(success=not errors, urls=urls, errors=errors)


async def delete_image(url: str, storage: StorageBackend) -> bool:
    key = storage.key_from_public_url(url)
    if key is None:
        logger.warning("Not a storage URL, nothing deleted: %s", url)
        return False

    try:
        await storage.remove([key])
    except Exception:
        logger.exception("Deleting %s from storage failed", key)
        return False
    return True


@asynccontextmanager
async def discard_on_error(
    urls: Sequence[str], storage: StorageBackend
) -> AsyncIterator[None]:
    """Delete freshly uploaded images if the block recording them raises."""
    try:
        yield
    except Exception:
        for url in urls:
            await delete_image(url, storage)
        raise
