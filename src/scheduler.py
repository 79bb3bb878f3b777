import logging
import os
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

import httpx

from src.base.db import async_session
from src.base.models import local_today
from src.base.resilience import HTTP_TIMEOUT_SECONDS
from src.facility.maintenance import (
    is_due_today,
    maintenance_base_date,
    next_due_date,
)
from src.facility.store import (
    ReminderCandidate,
    get_reminder_candidates,
    mark_notified,
)
from src.notify import create_dispatcher
from src.notify.email import EmailDispatcher
from src.notify.templates import build_reminder_email

logger = logging.getLogger(__name__)

REMINDER_LOCALE = os.environ.get("GATEWORKS_REMINDER_LOCALE", "es")


@dataclass(frozen=True)
class ReminderRecipient:
    facility: str
    client: str


@dataclass(frozen=True)
class ReminderSummary:
    scanned: int
    sent_to: list[ReminderRecipient] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return len(self.sent_to)

    @property
    def message(self) -> str:
        return f"Processed {self.scanned} facilities. Sent {self.sent} emails."


async def _remind(
    dispatcher: EmailDispatcher, candidate: ReminderCandidate, today: date
) -> bool:
    if not candidate.client_email:
        return False
    if candidate.last_notified_date == today:
        logger.info(
            "Facility %s already reminded today, skipping", candidate.facility_id
        )
        return False

    due = next_due_date(
        candidate.installation_date,
        candidate.maintenance_period_months,
        candidate.last_maintenance_date,
    )
    if not is_due_today(due, today):
        return False

    subject, html = build_reminder_email(
        candidate.client_name,
        candidate.facility_name,
        maintenance_base_date(
            candidate.installation_date, candidate.last_maintenance_date
        ),
        REMINDER_LOCALE,
    )
    result = await dispatcher.send(candidate.client_email, subject, html)
    if not result.success:
        logger.warning(
            "Reminder for facility %s not sent: %s",
            candidate.facility_id,
            result.error,
        )
        return False
    return True


async def _record_notified(facility_ids: list[UUID], today: date) -> None:
    if not facility_ids:
        return
    try:
        async with async_session() as session:
            await mark_notified(session, facility_ids, today)
            await session.commit()
    except Exception:
        logger.exception("Failed to record reminder dates for %s", facility_ids)


async def run_maintenance_reminders(
    dispatcher: EmailDispatcher, today: date | None = None
) -> ReminderSummary:
    """
    Email every client whose facility is due for maintenance today.

    Three phases:
    1. Fetch facilities joined with client contacts → DTOs (short DB session).
       A failure here aborts the run.
    2. Dispatch reminders (no DB session). A failed dispatch is logged and the
       scan goes on.
    3. Record `last_notified_date` for successful dispatches so a second run
       on the same day does not email the same client again.
    """
    today = today or local_today()

    # Phase 1
    async with async_session() as session:
        candidates = await get_reminder_candidates(session)

    # Phase 2
    sent_to: list[ReminderRecipient] = []
    notified_ids: list[UUID] = []

    try:
        for candidate in candidates:
            try:
                if await _remind(dispatcher, candidate, today):
                    sent_to.append(
                        ReminderRecipient(
                            facility=candidate.facility_name,
                            client=candidate.client_name,
                        )
                    )
                    notified_ids.append(candidate.facility_id)
            except Exception:
                logger.exception(
                    "Failed to remind for facility %s", candidate.facility_id
                )
    finally:
        # Phase 3
        await _record_notified(notified_ids, today)

    summary = ReminderSummary(scanned=len(candidates), sent_to=sent_to)
    logger.info("Maintenance reminders for %s: %s", today, summary.message)
    return summary


async def run_scheduled_reminders() -> ReminderSummary | None:
    """Entry point for the in-process scheduler and the CLI."""
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        try:
            return await run_maintenance_reminders(create_dispatcher(client))
        except Exception:
            logger.exception("Scheduled maintenance reminder run failed")
            return None
