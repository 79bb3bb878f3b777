from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.base.models import BaseDbModel, UTCDateTime, utcnow

if TYPE_CHECKING:
    from src.facility.models import Facility


class Client(BaseDbModel):
    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    first_interaction_date: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=lambda _: utcnow()
    )

    facilities: Mapped[list[Facility]] = relationship(
        back_populates="client", cascade="all, delete-orphan", passive_deletes=True
    )
