from datetime import date
from unittest.mock import AsyncMock, Mock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.client.models import Client
from src.facility.models import Facility
from src.notify.email import DispatchResult
from src.scheduler import ReminderRecipient, run_maintenance_reminders
from tests.helpers import RecordingDispatcher

TODAY = date(2024, 4, 15)


async def _make_facility(
    session: AsyncSession,
    client_name: str = "Ana",
    email: str | None = "ana@example.com",
    facility_name: str = "North gate",
    installation_date: date = date(2024, 1, 15),
    **kwargs,
) -> Facility:
    client = Client(name=client_name, email=email)
    session.add(client)
    await session.flush()
    facility = Facility(
        client_id=client.id,
        name=facility_name,
        installation_date=installation_date,
        **kwargs,
    )
    session.add(facility)
    await session.flush()
    return facility


class TestRunMaintenanceReminders:
    async def test_sends_reminder_for_facility_due_today(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        facility = await _make_facility(db_session)
        await db_session.commit()
        dispatcher = RecordingDispatcher()

        with patch("src.scheduler.async_session", test_session_factory):
            summary = await run_maintenance_reminders(dispatcher, today=TODAY)

        assert summary.sent_to == [
            ReminderRecipient(facility="North gate", client="Ana")
        ]
        assert summary.message == "Processed 1 facilities. Sent 1 emails."
        [(to, subject, html)] = dispatcher.sent
        assert to == "ana@example.com"
        assert subject == "Recordatorio de Mantenimiento: North gate"
        assert "15/01/2024" in html

        async with test_session_factory() as verify_session:
            stored = await verify_session.get(Facility, facility.id)
            assert stored is not None
            assert stored.last_notified_date == TODAY

    async def test_nothing_due(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await _make_facility(db_session, installation_date=date(2024, 1, 16))
        await db_session.commit()
        dispatcher = RecordingDispatcher()

        with patch("src.scheduler.async_session", test_session_factory):
            summary = await run_maintenance_reminders(dispatcher, today=TODAY)

        assert summary.sent_to == []
        assert summary.scanned == 1
        assert summary.message == "Processed 1 facilities. Sent 0 emails."
        assert dispatcher.sent == []

    async def test_no_facilities(
        self, test_session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        with patch("src.scheduler.async_session", test_session_factory):
            summary = await run_maintenance_reminders(
                RecordingDispatcher(), today=TODAY
            )

        assert summary.message == "Processed 0 facilities. Sent 0 emails."

    async def test_uses_last_maintenance_date(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await _make_facility(
            db_session,
            installation_date=date(2023, 1, 15),
            maintenance_period_months=6,
            last_maintenance_date=date(2023, 10, 15),
        )
        await db_session.commit()
        dispatcher = RecordingDispatcher()

        with patch("src.scheduler.async_session", test_session_factory):
            summary = await run_maintenance_reminders(dispatcher, today=TODAY)

        assert summary.sent == 1

    async def test_skips_clients_without_email(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await _make_facility(db_session, email=None)
        await db_session.commit()
        dispatcher = RecordingDispatcher()

        with patch("src.scheduler.async_session", test_session_factory):
            summary = await run_maintenance_reminders(dispatcher, today=TODAY)

        assert summary.sent_to == []
        assert dispatcher.sent == []

    async def test_one_failure_does_not_block_others(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        failing = await _make_facility(
            db_session, client_name="Bob", email="bob@example.com", facility_name="A"
        )
        await _make_facility(
            db_session, client_name="Eva", email="eva@example.com", facility_name="B"
        )
        await db_session.commit()
        dispatcher = RecordingDispatcher(failing=["bob@example.com"])

        with patch("src.scheduler.async_session", test_session_factory):
            summary = await run_maintenance_reminders(dispatcher, today=TODAY)

        assert summary.sent_to == [ReminderRecipient(facility="B", client="Eva")]
        assert summary.scanned == 2

        async with test_session_factory() as verify_session:
            stored = await verify_session.get(Facility, failing.id)
            assert stored is not None
            assert stored.last_notified_date is None

    async def test_raising_dispatch_does_not_block_others(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        ana = await _make_facility(
            db_session, client_name="Ana", email="ana@example.com", facility_name="A"
        )
        bob = await _make_facility(
            db_session, client_name="Bob", email="bob@example.com", facility_name="B"
        )
        eva = await _make_facility(
            db_session, client_name="Eva", email="eva@example.com", facility_name="C"
        )
        await db_session.commit()
        dispatcher = RecordingDispatcher(raising=["bob@example.com"])

        with patch("src.scheduler.async_session", test_session_factory):
            summary = await run_maintenance_reminders(dispatcher, today=TODAY)

        assert summary.scanned == 3
        assert {r.client for r in summary.sent_to} == {"Ana", "Eva"}
        assert {to for to, _, _ in dispatcher.sent} == {
            "ana@example.com",
            "eva@example.com",
        }

        async with test_session_factory() as verify_session:
            for facility, expected in ((ana, TODAY), (bob, None), (eva, TODAY)):
                stored = await verify_session.get(Facility, facility.id)
                assert stored is not None
                assert stored.last_notified_date == expected

        with patch("src.scheduler.async_session", test_session_factory):
            again = await run_maintenance_reminders(
                RecordingDispatcher(), today=TODAY
            )

        assert again.sent_to == [ReminderRecipient(facility="B", client="Bob")]

    async def test_does_not_send_twice_on_same_day(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await _make_facility(db_session)
        await db_session.commit()
        dispatcher = RecordingDispatcher()

        with patch("src.scheduler.async_session", test_session_factory):
            first = await run_maintenance_reminders(dispatcher, today=TODAY)
            second = await run_maintenance_reminders(dispatcher, today=TODAY)

        assert first.sent == 1
        assert second.sent == 0
        assert len(dispatcher.sent) == 1

    async def test_missing_api_key_sends_nothing(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await _make_facility(db_session)
        await db_session.commit()
        dispatcher = AsyncMock()
        dispatcher.send.return_value = DispatchResult(
            success=False, error="Missing API key"
        )

        with patch("src.scheduler.async_session", test_session_factory):
            summary = await run_maintenance_reminders(dispatcher, today=TODAY)

        assert summary.sent_to == []
        dispatcher.send.assert_awaited_once()

    async def test_fetch_failure_aborts_run(self) -> None:
        broken_factory = Mock(side_effect=RuntimeError("database down"))

        with patch("src.scheduler.async_session", broken_factory):
            with pytest.raises(RuntimeError, match="database down"):
                await run_maintenance_reminders(RecordingDispatcher(), today=TODAY)
