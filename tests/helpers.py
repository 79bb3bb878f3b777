import io
from collections.abc import Sequence

from fastapi import APIRouter, FastAPI
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthUser, get_current_user
from src.base.dependencies import get_session
from src.base.resilience import FailureKind
from src.media import get_storage
from src.media.interface import StorageBackend
from src.notify.email import DispatchResult, EmailDispatcher

STORAGE_BASE = "https://project.storage.test"
BUCKET = "gateworks-storage"


class FakeStorage(StorageBackend):
    """In-memory object store; keys listed in `failing` are rejected."""

    def __init__(
        self, failing: Sequence[str] = (), buckets: Sequence[str] = (BUCKET,)
    ) -> None:
        self.objects: dict[str, bytes] = {}
        self.failing = list(failing)
        self.buckets = list(buckets)

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        if any(marker in key for marker in self.failing):
            raise RuntimeError("storage unavailable")
        self.objects[key] = data
        return key

    def public_url(self, key: str) -> str:
        return f"{STORAGE_BASE}/storage/v1/object/public/{BUCKET}/{key}"

    def key_from_public_url(self, url: str) -> str | None:
        prefix = f"/storage/v1/object/public/{BUCKET}/"
        _, found, key = url.partition(prefix)
        return key if found and key else None

    async def remove(self, keys: Sequence[str]) -> None:
        for key in keys:
            self.objects.pop(key, None)

    async def list_buckets(self) -> list[str]:
        return list(self.buckets)


class RecordingDispatcher(EmailDispatcher):
    """Records every send.

    Addresses in `failing` get a provider error, addresses in `raising` make
    `send` raise.
    """

    def __init__(
        self, failing: Sequence[str] = (), raising: Sequence[str] = ()
    ) -> None:
        self.failing = set(failing)
        self.raising = set(raising)
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, to: str, subject: str, html: str) -> DispatchResult:
        if to in self.raising:
            raise RuntimeError("unexpected provider payload")
        if to in self.failing:
            return DispatchResult(
                success=False, error="provider rejected", kind=FailureKind.PROVIDER
            )
        self.sent.append((to, subject, html))
        return DispatchResult(success=True, message_id=f"msg-{len(self.sent)}")


def image_bytes(
    size: tuple[int, int] = (64, 48), fmt: str = "PNG", mode: str = "RGB"
) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color=0).save(buffer, fmt)
    return buffer.getvalue()


def build_test_app(
    *routers: APIRouter,
    session: AsyncSession,
    user: AuthUser | None = None,
    storage: StorageBackend | None = None,
) -> FastAPI:
    """App with the given routers, all sharing the test session."""
    test_app = FastAPI()
    for router in routers:
        test_app.include_router(router)

    async def override_session() -> AsyncSession:  # type: ignore[misc]
        yield session  # type: ignore[misc]

    test_app.dependency_overrides[get_session] = override_session
    if user is not None:
        test_app.dependency_overrides[get_current_user] = lambda: user
    if storage is not None:
        test_app.dependency_overrides[get_storage] = lambda: storage
    return test_app
