import enum
import logging
import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import httpx
from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.dependencies import get_session
from src.base.resilience import HTTP_TIMEOUT_SECONDS
from src.user.models import Profile

logger = logging.getLogger(__name__)


class Role(enum.IntEnum):
    ADMIN = 1
    MEMBER = 2


class Capability(enum.Enum):
    MANAGE_CATALOG = "manage_catalog"
    MANAGE_CLIENTS = "manage_clients"
    MANAGE_PROFILES = "manage_profiles"
    VIEW_DASHBOARD = "view_dashboard"


_ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.MEMBER: frozenset(),
}


def role_from_value(value: int | None) -> Role | None:
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def has_capability(role: Role | int | None, capability: Capability) -> bool:
    resolved = role_from_value(role)
    if resolved is None:
        return False
    return capability in _ROLE_CAPABILITIES[resolved]


class AuthError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user_id: UUID
    email: str


@dataclass(frozen=True)
class AuthenticatedIdentity:
    user_id: UUID
    email: str


@dataclass(frozen=True)
class AuthUser:
    id: UUID
    email: str
    role: Role | None
    profile: Profile | None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class AuthProvider:
    """Password auth against the hosted backend's auth API."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, api_key: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self._api_key}
        headers["Authorization"] = f"Bearer {access_token or self._api_key}"
        return headers

    @staticmethod
    def _payload(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.is_error:
            message = (
                data.get("msg")
                or data.get("error_description")
                or data.get("message")
                or data.get("error")
                or f"Auth request failed with status {response.status_code}"
            )
            raise AuthError(str(message), response.status_code)
        return data

    async def sign_in(self, email: str, password: str) -> AuthSession:
        response = await self._client.post(
            f"{self._base_url}/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        data = self._payload(response)
        user = data.get("user") or {}
        if "access_token" not in data or "id" not in user:
            raise AuthError("Malformed sign-in response")
        return AuthSession(
            access_token=data["access_token"],
            user_id=UUID(user["id"]),
            email=user.get("email") or email,
        )

    async def sign_up(
        self, email: str, password: str, full_name: str, username: str
    ) -> UUID:
        response = await self._client.post(
            f"{self._base_url}/auth/v1/signup",
            json={
                "email": email,
                "password": password,
                "data": {"full_name": full_name, "username": username},
            },
            headers=self._headers(),
        )
        data = self._payload(response)
        # Depending on email confirmation settings the user is either the
        # payload itself or nested under "user".
        user = data.get("user") or data
        if "id" not in user:
            raise AuthError("Malformed sign-up response")
        return UUID(user["id"])

    async def sign_out(self, access_token: str) -> None:
        response = await self._client.post(
            f"{self._base_url}/auth/v1/logout", headers=self._headers(access_token)
        )
        self._payload(response)

    async def get_user(self, access_token: str) -> AuthenticatedIdentity | None:
        response = await self._client.get(
            f"{self._base_url}/auth/v1/user", headers=self._headers(access_token)
        )
        if response.status_code in (401, 403):
            return None
        data = self._payload(response)
        return AuthenticatedIdentity(
            user_id=UUID(data["id"]), email=data.get("email") or ""
        )


async def get_auth_provider() -> AsyncGenerator[AuthProvider]:
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        yield AuthProvider(
            client,
            base_url=os.environ.get("GATEWORKS_SUPABASE_URL", ""),
            api_key=os.environ.get("GATEWORKS_SUPABASE_ANON_KEY", ""),
        )


def bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Not authenticated")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401, detail="Authorization must be 'Bearer <token>'"
        )
    return token.strip()


async def get_current_user(
    authorization: str | None = Header(default=None),
    provider: AuthProvider = Depends(get_auth_provider),
    session: AsyncSession = Depends(get_session),
) -> AuthUser:
    token = bearer_token(authorization)

    try:
        identity = await provider.get_user(token)
    except AuthError:
        logger.warning("Auth provider rejected token lookup", exc_info=True)
        identity = None
    except httpx.HTTPError:
        logger.exception("Auth provider unreachable")
        raise HTTPException(
            status_code=503, detail="Authentication service unavailable"
        )

    if identity is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    profile = await session.get(Profile, identity.user_id)
    return AuthUser(
        id=identity.user_id,
        email=identity.email,
        role=role_from_value(profile.role) if profile else None,
        profile=profile,
    )


def require_capability(
    capability: Capability,
) -> Callable[..., Awaitable[AuthUser]]:
    async def dependency(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if not has_capability(user.role, capability):
            raise HTTPException(status_code=403, detail="Not allowed")
        return user

    return dependency
