from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.base.models import BaseDbModel
from src.base.schemas import PydanticJSONB


class ProductCategory(BaseDbModel):
    __tablename__ = "products_category"

    idname: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    items: Mapped[list[str]] = mapped_column(
        PydanticJSONB(list[str]), nullable=False, default=lambda _: []
    )
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)

    products: Mapped[list[Product]] = relationship(
        back_populates="category", passive_deletes=True
    )


class Product(BaseDbModel):
    __tablename__ = "products"

    idname: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    images_url: Mapped[list[str]] = mapped_column(
        PydanticJSONB(list[str]), nullable=False, default=lambda _: []
    )
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("products_category.id", ondelete="SET NULL"), nullable=True
    )
    specifications: Mapped[dict[str, str]] = mapped_column(
        PydanticJSONB(dict[str, str]), nullable=False, default=lambda _: {}
    )
    features: Mapped[list[str]] = mapped_column(
        PydanticJSONB(list[str]), nullable=False, default=lambda _: []
    )

    category: Mapped[ProductCategory | None] = relationship(back_populates="products")


class Service(BaseDbModel):
    __tablename__ = "services"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    features: Mapped[list[str]] = mapped_column(
        PydanticJSONB(list[str]), nullable=False, default=lambda _: []
    )


class Work(BaseDbModel):
    """A completed job shown in the public portfolio."""

    __tablename__ = "works"

    idname: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    client: Mapped[str] = mapped_column(String, nullable=False, default="")
    location: Mapped[str] = mapped_column(String, nullable=False, default="")
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tags: Mapped[list[str]] = mapped_column(
        PydanticJSONB(list[str]), nullable=False, default=lambda _: []
    )
    image_urls: Mapped[list[str]] = mapped_column(
        PydanticJSONB(list[str]), nullable=False, default=lambda _: []
    )
    results: Mapped[list[str]] = mapped_column(
        PydanticJSONB(list[str]), nullable=False, default=lambda _: []
    )
