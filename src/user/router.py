import logging
from datetime import datetime
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import (
    AuthError,
    AuthProvider,
    AuthUser,
    Capability,
    Role,
    bearer_token,
    get_auth_provider,
    get_current_user,
    require_capability,
)
from src.base.dependencies import get_or_404, get_session
from src.base.schemas import NonEmptyStr, PatchModel
from src.media import get_storage, read_uploads
from src.media.interface import ImageFolder, StorageBackend
from src.media.pipeline import delete_image, discard_on_error, upload_image
from src.user.models import Profile

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth")
admin_router = APIRouter(
    prefix="/admin/profiles",
    dependencies=[Depends(require_capability(Capability.MANAGE_PROFILES))],
)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: NonEmptyStr
    username: NonEmptyStr


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: UUID
    email: str


class SignUpResponse(BaseModel):
    user_id: UUID


class ProfileResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    full_name: str | None
    username: str | None
    email: str | None
    avatar_url: str | None
    role: int | None
    created_at: datetime
    updated_at: datetime | None


class MeResponse(BaseModel):
    id: UUID
    email: str
    is_admin: bool
    profile: ProfileResponse | None


class OwnProfileUpdate(PatchModel):
    nullable = frozenset({"full_name", "username"})

    full_name: NonEmptyStr | None = None
    username: NonEmptyStr | None = None


class ProfileUpdate(OwnProfileUpdate):
    role: Role | None = None


def _provider_unavailable(exc: httpx.HTTPError) -> HTTPException:
    logger.error("Auth provider unreachable: %s", exc)
    return HTTPException(status_code=503, detail="Authentication service unavailable")


@auth_router.post("/sign-in", response_model=SessionResponse)
async def sign_in(
    body: SignInRequest,
    provider: AuthProvider = Depends(get_auth_provider),
) -> SessionResponse:
    try:
        auth_session = await provider.sign_in(body.email, body.password)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
    except httpx.HTTPError as exc:
        raise _provider_unavailable(exc)

    return SessionResponse(
        access_token=auth_session.access_token,
        user_id=auth_session.user_id,
        email=auth_session.email,
    )


@auth_router.post("/sign-up", response_model=SignUpResponse, status_code=201)
async def sign_up(
    body: SignUpRequest,
    provider: AuthProvider = Depends(get_auth_provider),
    session: AsyncSession = Depends(get_session),
) -> SignUpResponse:
    """Register with the auth provider and create the matching profile row."""
    try:
        user_id = await provider.sign_up(
            body.email, body.password, body.full_name, body.username
        )
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except httpx.HTTPError as exc:
        raise _provider_unavailable(exc)

    session.add(
        Profile(
            id=user_id,
            full_name=body.full_name,
            username=body.username,
            email=body.email,
            role=Role.MEMBER,
        )
    )
    await session.flush()
    return SignUpResponse(user_id=user_id)


@auth_router.post("/sign-out", status_code=204)
async def sign_out(
    authorization: str | None = Header(default=None),
    provider: AuthProvider = Depends(get_auth_provider),
) -> None:
    token = bearer_token(authorization)
    try:
        await provider.sign_out(token)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
    except httpx.HTTPError as exc:
        raise _provider_unavailable(exc)


@auth_router.get("/me", response_model=MeResponse)
async def me(user: AuthUser = Depends(get_current_user)) -> MeResponse:
    return MeResponse(
        id=user.id,
        email=user.email,
        is_admin=user.is_admin,
        profile=ProfileResponse.model_validate(user.profile) if user.profile else None,
    )


@auth_router.patch("/me", response_model=ProfileResponse)
async def update_me(
    body: OwnProfileUpdate,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Profile:
    profile = await get_or_404(session, Profile, user.id, "Profile")
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(profile, key, value)
    await session.flush()
    return profile


@admin_router.get("", response_model=list[ProfileResponse])
async def list_profiles(session: AsyncSession = Depends(get_session)) -> list[Profile]:
    stmt = select(Profile).order_by(Profile.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


@admin_router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: UUID, session: AsyncSession = Depends(get_session)
) -> Profile:
    return await get_or_404(session, Profile, profile_id, "Profile")


@admin_router.patch("/{profile_id}", response_model=ProfileResponse)
async def update_profile(
    profile_id: UUID,
    body: ProfileUpdate,
    session: AsyncSession = Depends(get_session),
) -> Profile:
    profile = await get_or_404(session, Profile, profile_id, "Profile")
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(profile, key, int(value) if isinstance(value, Role) else value)
    await session.flush()
    return profile


@admin_router.delete("/{profile_id}", status_code=204)
async def delete_profile(
    profile_id: UUID, session: AsyncSession = Depends(get_session)
) -> None:
    profile = await get_or_404(session, Profile, profile_id, "Profile")
    await session.delete(profile)


@admin_router.put("/{profile_id}/avatar", response_model=ProfileResponse)
async def set_avatar(
    profile_id: UUID,
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
) -> Profile:
    profile = await get_or_404(session, Profile, profile_id, "Profile")

    [upload] = await read_uploads([file])
    result = await upload_image(upload, ImageFolder.PROFILES, storage, profile.id)
    if result.url is None:
        raise HTTPException(status_code=400, detail=result.error)

    previous = profile.avatar_url
    async with discard_on_error([result.url], storage):
        profile.avatar_url = result.url
        await session.flush()
    if previous and not await delete_image(previous, storage):
        logger.warning("Previous avatar %s kept in storage", previous)
    return profile
