import asyncio
from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select

from src.auth import Capability, require_capability
from src.base.db import async_session
from src.base.models import local_today
from src.client.models import Client
from src.client.router import ClientResponse
from src.facility import store
from src.facility.router import FacilityResponse, UpcomingMaintenanceResponse

router = APIRouter(
    prefix="/admin/dashboard",
    dependencies=[Depends(require_capability(Capability.VIEW_DASHBOARD))],
)

RECENT_LIMIT = 5


class DashboardResponse(BaseModel):
    total_clients: int
    recent_clients: list[ClientResponse]
    recent_facilities: list[FacilityResponse]
    upcoming_maintenance: list[UpcomingMaintenanceResponse]


# Each loader opens its own session: one AsyncSession must not be shared by
# concurrent tasks.


async def _count_clients() -> int:
    async with async_session() as session:
        return (await session.execute(select(func.count(Client.id)))).scalar_one()


async def _recent_clients() -> list[ClientResponse]:
    async with async_session() as session:
        stmt = select(Client).order_by(Client.created_at.desc()).limit(RECENT_LIMIT)
        clients = (await session.execute(stmt)).scalars().all()
        return [ClientResponse.model_validate(c) for c in clients]


async def _recent_facilities() -> list[FacilityResponse]:
    async with async_session() as session:
        facilities = await store.get_recent_facilities(session, RECENT_LIMIT)
        return [FacilityResponse.model_validate(f) for f in facilities]


async def _upcoming(today: date) -> list[UpcomingMaintenanceResponse]:
    async with async_session() as session:
        scheduled = await store.get_upcoming_maintenance(session, today, RECENT_LIMIT)
        return [
            UpcomingMaintenanceResponse(
                facility=FacilityResponse.model_validate(s.facility),
                next_due_date=s.next_due_date,
            )
            for s in scheduled
        ]


@router.get("", response_model=DashboardResponse)
async def dashboard() -> DashboardResponse:
    total, clients, facilities, upcoming = await asyncio.gather(
        _count_clients(),
        _recent_clients(),
        _recent_facilities(),
        _upcoming(local_today()),
    )
    return DashboardResponse(
        total_clients=total,
        recent_clients=clients,
        recent_facilities=facilities,
        upcoming_maintenance=upcoming,
    )
