from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Capability, require_capability
from src.base.dependencies import get_or_404, get_session
from src.base.schemas import NonEmptyStr, PatchModel
from src.client.models import Client

router = APIRouter(
    prefix="/admin/clients",
    dependencies=[Depends(require_capability(Capability.MANAGE_CLIENTS))],
)


class ClientCreate(BaseModel):
    name: NonEmptyStr
    email: EmailStr | None = None
    phone: str | None = None


class ClientUpdate(PatchModel):
    nullable = frozenset({"email", "phone"})

    name: NonEmptyStr | None = None
    email: EmailStr | None = None
    phone: str | None = None


class ClientResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    name: str
    email: str | None
    phone: str | None
    first_interaction_date: datetime
    created_at: datetime
    updated_at: datetime | None


async def list_clients(
    session: AsyncSession, search: str | None = None
) -> list[Client]:
    stmt = select(Client).order_by(Client.created_at.desc())
    if search:
        stmt = stmt.where(Client.name.ilike(f"%{search}%"))
    return list((await session.execute(stmt)).scalars().all())


@router.get("", response_model=list[ClientResponse])
async def get_clients(
    search: str | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[Client]:
    return await list_clients(session, search)


@router.post("", response_model=ClientResponse, status_code=201)
async def create_client(
    body: ClientCreate,
    session: AsyncSession = Depends(get_session),
) -> Client:
    client = Client(**body.model_dump())
    session.add(client)
    await session.flush()
    return client


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> Client:
    return await get_or_404(session, Client, client_id, "Client")


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: UUID,
    body: ClientUpdate,
    session: AsyncSession = Depends(get_session),
) -> Client:
    client = await get_or_404(session, Client, client_id, "Client")
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(client, key, value)
    await session.flush()
    return client


@router.delete("/{client_id}", status_code=204)
async def delete_client(
    client_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> None:
    client = await get_or_404(session, Client, client_id, "Client")
    await session.delete(client)
