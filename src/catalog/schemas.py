from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, StringConstraints

from src.base.schemas import BaseDTO, NonEmptyStr, PatchModel

Slug = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True, min_length=1, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
    ),
]


class CategoryCreate(BaseModel):
    idname: Slug
    name: NonEmptyStr
    description: str = ""
    items: list[str] = Field(default_factory=list)


class CategoryUpdate(PatchModel):
    idname: Slug | None = None
    name: NonEmptyStr | None = None
    description: str | None = None
    items: list[str] | None = None


class CategoryResponse(BaseDTO):
    idname: str
    name: str
    description: str
    items: list[str]
    image_url: str | None


class ProductCreate(BaseModel):
    idname: Slug
    name: NonEmptyStr
    description: str = ""
    category_id: UUID | None = None
    specifications: dict[str, str] = Field(default_factory=dict)
    features: list[str] = Field(default_factory=list)


class ProductUpdate(PatchModel):
    nullable = frozenset({"category_id"})

    idname: Slug | None = None
    name: NonEmptyStr | None = None
    description: str | None = None
    category_id: UUID | None = None
    specifications: dict[str, str] | None = None
    features: list[str] | None = None


class ProductResponse(BaseDTO):
    idname: str
    name: str
    description: str
    images_url: list[str]
    category_id: UUID | None
    specifications: dict[str, str]
    features: list[str]


class ProductWithCategoryResponse(ProductResponse):
    category: CategoryResponse | None


class CategoryWithProductsResponse(BaseModel):
    category: CategoryResponse
    products: list[ProductResponse]


class ServiceCreate(BaseModel):
    name: NonEmptyStr
    description: str = ""
    features: list[str] = Field(default_factory=list)


class ServiceUpdate(PatchModel):
    name: NonEmptyStr | None = None
    description: str | None = None
    features: list[str] | None = None


class ServiceResponse(BaseDTO):
    name: str
    description: str
    features: list[str]


class WorkCreate(BaseModel):
    idname: Slug
    name: NonEmptyStr
    client: str = ""
    location: str = ""
    year: int | None = Field(default=None, ge=1900, le=2100)
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    results: list[str] = Field(default_factory=list)


class WorkUpdate(PatchModel):
    nullable = frozenset({"year"})

    idname: Slug | None = None
    name: NonEmptyStr | None = None
    client: str | None = None
    location: str | None = None
    year: int | None = Field(default=None, ge=1900, le=2100)
    description: str | None = None
    tags: list[str] | None = None
    results: list[str] | None = None


class WorkResponse(BaseDTO):
    idname: str
    name: str
    client: str
    location: str
    year: int | None
    description: str
    tags: list[str]
    image_urls: list[str]
    results: list[str]


class ImageBatchResponse(BaseModel):
    urls: list[str]
    errors: list[str]
