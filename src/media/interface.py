from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

from src.base.resilience import FailureKind


class ImageFolder(enum.Enum):
    PRODUCTS = "products"
    WORKS = "works"
    PROFILES = "profiles"
    FACILITIES = "facilities"


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ImageUploadResult:
    success: bool
    url: str | None = None
    error: str | None = None
    kind: FailureKind | None = None

    @classmethod
    def failed(cls, error: str, kind: FailureKind) -> ImageUploadResult:
        return cls(success=False, error=error, kind=kind)


@dataclass(frozen=True)
class BatchUploadResult:
    success: bool
    urls: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class StorageBackend(ABC):
    """Object store holding public images."""

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store `data` under `key` and return the stored object's key."""

    @abstractmethod
    def public_url(self, key: str) -> str: ...

    @abstractmethod
    def key_from_public_url(self, url: str) -> str | None:
        """Recover the key behind a URL from `public_url`, or None."""

    @abstractmethod
    async def remove(self, keys: Sequence[str]) -> None: ...

    @abstractmethod
    async def list_buckets(self) -> list[str]: ...
