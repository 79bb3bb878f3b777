import enum
import logging
import time

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text

from src.auth import Capability, require_capability
from src.base.db import async_session
from src.media import STORAGE_BUCKET, get_storage
from src.media.interface import StorageBackend

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/status",
    dependencies=[Depends(require_capability(Capability.VIEW_DASHBOARD))],
)


class ProbeStatus(str, enum.Enum):
    CONNECTED = "connected"
    ERROR = "error"


class ProbeResult(BaseModel):
    status: ProbeStatus
    message: str
    response_time_ms: int


class SystemStatusResponse(BaseModel):
    database: ProbeResult
    storage: ProbeResult


def _elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1000)


async def probe_database() -> ProbeResult:
    started = time.perf_counter()
    try:
        async with async_session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.exception("Database probe failed")
        return ProbeResult(
            status=ProbeStatus.ERROR,
            message=f"Database error: {exc}",
            response_time_ms=_elapsed_ms(started),
        )
    return ProbeResult(
        status=ProbeStatus.CONNECTED,
        message="Database connection OK",
        response_time_ms=_elapsed_ms(started),
    )


async def probe_storage(storage: StorageBackend, bucket: str) -> ProbeResult:
    started = time.perf_counter()
    try:
        buckets = await storage.list_buckets()
    except Exception as exc:
        logger.exception("Storage probe failed")
        return ProbeResult(
            status=ProbeStatus.ERROR,
            message=f"Storage error: {exc}",
            response_time_ms=_elapsed_ms(started),
        )

    if bucket not in buckets:
        return ProbeResult(
            status=ProbeStatus.ERROR,
            message=f"Bucket '{bucket}' not found",
            response_time_ms=_elapsed_ms(started),
        )
    return ProbeResult(
        status=ProbeStatus.CONNECTED,
        message=f"Bucket '{bucket}' available",
        response_time_ms=_elapsed_ms(started),
    )


@router.get("", response_model=SystemStatusResponse)
async def system_status(
    storage: StorageBackend = Depends(get_storage),
) -> SystemStatusResponse:
    return SystemStatusResponse(
        database=await probe_database(),
        storage=await probe_storage(storage, STORAGE_BUCKET),
    )
