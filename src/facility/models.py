from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.base.models import BaseDbModel
from src.base.schemas import PydanticJSONB
from src.client.models import Client
from src.facility import maintenance


class Facility(BaseDbModel):
    """A gate or similar installation owned by a client, serviced periodically."""

    __tablename__ = "facilities"
    __table_args__ = (
        CheckConstraint(
            "maintenance_period_months >= 1", name="ck_facility_period_positive"
        ),
    )

    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    installation_date: Mapped[date] = mapped_column(Date, nullable=False)
    maintenance_period_months: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=maintenance.DEFAULT_MAINTENANCE_PERIOD_MONTHS,
    )
    last_maintenance_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[list[str]] = mapped_column(
        PydanticJSONB(list[str]), nullable=False, default=lambda _: []
    )
    # Set by the reminder job once a reminder went out for the current due date.
    last_notified_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    client: Mapped[Client] = relationship(back_populates="facilities")

    @property
    def client_name(self) -> str | None:
        return self.client.name if self.client is not None else None

    @property
    def next_due_date(self) -> date:
        return maintenance.next_due_date(
            self.installation_date,
            self.maintenance_period_months,
            self.last_maintenance_date,
        )
