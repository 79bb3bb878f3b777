from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.base.models import BaseDbModel


class Profile(BaseDbModel):
    """Back-office profile. `id` is the auth provider's user id."""

    __tablename__ = "profiles"

    full_name: Mapped[str | None] = mapped_column(String, nullable=True)
    username: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[int | None] = mapped_column(Integer, nullable=True)
