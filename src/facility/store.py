from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.base.models import utcnow
from src.client.models import Client
from src.facility.maintenance import ScheduledMaintenance, upcoming_maintenance
from src.facility.models import Facility

RECENT_DAYS = 7


@dataclass(frozen=True)
class ReminderCandidate:
    facility_id: UUID
    facility_name: str
    client_name: str
    client_email: str | None
    installation_date: date
    maintenance_period_months: int
    last_maintenance_date: date | None
    last_notified_date: date | None


def _with_client() -> Select[tuple[Facility]]:
    return select(Facility).options(selectinload(Facility.client))


async def list_facilities(session: AsyncSession) -> list[Facility]:
    stmt = _with_client().order_by(Facility.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def get_facility(session: AsyncSession, facility_id: UUID) -> Facility | None:
    stmt = _with_client().where(Facility.id == facility_id)
    return (await session.execute(stmt)).scalar_one_or_none()


async def get_recent_facilities(
    session: AsyncSession, limit: int = 5
) -> list[Facility]:
    """Facilities created within the last week, newest first."""
    since = utcnow() - timedelta(days=RECENT_DAYS)
    stmt = (
        _with_client()
        .where(Facility.created_at >= since)
        .order_by(Facility.created_at.desc())
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all())


async def get_upcoming_maintenance(
    session: AsyncSession, today: date, limit: int = 5
) -> Sequence[ScheduledMaintenance[Facility]]:
    # Due dates depend on per-row month arithmetic, so they are computed here
    # rather than in SQL.
    facilities = (await session.execute(_with_client())).scalars().all()
    return upcoming_maintenance(facilities, today, limit)


async def get_reminder_candidates(session: AsyncSession) -> list[ReminderCandidate]:
    """Every facility with its client's contact details.

    The inner join drops facilities whose client no longer exists.
    """
    stmt = select(Facility, Client.name, Client.email).join(
        Client, Facility.client_id == Client.id
    )
    rows = (await session.execute(stmt)).all()
    return [
        ReminderCandidate(
            facility_id=facility.id,
            facility_name=facility.name,
            client_name=client_name,
            client_email=client_email,
            installation_date=facility.installation_date,
            maintenance_period_months=facility.maintenance_period_months,
            last_maintenance_date=facility.last_maintenance_date,
            last_notified_date=facility.last_notified_date,
        )
        for facility, client_name, client_email in rows
    ]


async def mark_notified(
    session: AsyncSession, facility_ids: Sequence[UUID], notified_on: date
) -> None:
    if not facility_ids:
        return
    await session.execute(
        update(Facility)
        .where(Facility.id.in_(facility_ids))
        .values(last_notified_date=notified_on)
    )
