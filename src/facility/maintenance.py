"""Maintenance due-date arithmetic.

Everything here is pure: results depend only on the arguments and are
recomputed on every call.

Month addition uses `relativedelta`, which clamps to the last day of the
target month when the base day does not exist there (Jan 31 + 1 month is
Feb 28, or Feb 29 in leap years).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Generic, Protocol, TypeVar

from dateutil.relativedelta import relativedelta

DEFAULT_MAINTENANCE_PERIOD_MONTHS = 3


class MaintainedFacility(Protocol):
    @property
    def installation_date(self) -> date: ...

    @property
    def maintenance_period_months(self) -> int: ...

    @property
    def last_maintenance_date(self) -> date | None: ...


F = TypeVar("F", bound=MaintainedFacility)


@dataclass(frozen=True)
class MaintenanceDueInfo:
    next_due_date: date
    is_due_today: bool
    is_upcoming: bool


@dataclass(frozen=True)
class ScheduledMaintenance(Generic[F]):
    facility: F
    next_due_date: date


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def maintenance_base_date(
    installation_date: date, last_maintenance_date: date | None
) -> date:
    """The date the maintenance interval counts from."""
    return _as_date(last_maintenance_date or installation_date)


def next_due_date(
    installation_date: date,
    maintenance_period_months: int,
    last_maintenance_date: date | None = None,
) -> date:
    base = maintenance_base_date(installation_date, last_maintenance_date)
    return base + relativedelta(months=maintenance_period_months)


def is_due_today(due: date | datetime, today: date | datetime) -> bool:
    return _as_date(due) == _as_date(today)


def is_upcoming(due: date | datetime, today: date | datetime) -> bool:
    return _as_date(due) >= _as_date(today)


def maintenance_due_info(
    facility: MaintainedFacility, today: date | datetime
) -> MaintenanceDueInfo:
    due = next_due_date(
        facility.installation_date,
        facility.maintenance_period_months,
        facility.last_maintenance_date,
    )
    return MaintenanceDueInfo(
        next_due_date=due,
        is_due_today=is_due_today(due, today),
        is_upcoming=is_upcoming(due, today),
    )


def upcoming_maintenance(
    facilities: Iterable[F], today: date | datetime, limit: int
) -> Sequence[ScheduledMaintenance[F]]:
    """Facilities due today or later, soonest first, at most `limit` of them."""
    scheduled: list[ScheduledMaintenance[F]] = []
    for facility in facilities:
        info = maintenance_due_info(facility, today)
        if info.is_upcoming:
            scheduled.append(ScheduledMaintenance(facility, info.next_due_date))

    scheduled.sort(key=lambda s: s.next_due_date)
    return scheduled[: max(limit, 0)]
