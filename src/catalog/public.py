import enum

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.base.dependencies import get_session
from src.catalog.models import Product, ProductCategory, Service, Work
from src.catalog.schemas import (
    CategoryResponse,
    CategoryWithProductsResponse,
    ProductResponse,
    ProductWithCategoryResponse,
    ServiceResponse,
    WorkResponse,
)


class Locale(str, enum.Enum):
    ES = "es"
    EN = "en"


def resolve_locale(lang: str) -> Locale:
    try:
        return Locale(lang)
    except ValueError:
        raise HTTPException(status_code=404, detail="Not found") from None


# Registered after every other router: `/{lang}` would otherwise swallow them.
router = APIRouter(prefix="/{lang}", dependencies=[Depends(resolve_locale)])


@router.get("/products", response_model=list[ProductWithCategoryResponse])
async def products_with_category(
    session: AsyncSession = Depends(get_session),
) -> list[Product]:
    stmt = (
        select(Product)
        .options(selectinload(Product.category))
        .order_by(Product.created_at.desc())
    )
    return list((await session.execute(stmt)).scalars().all())


@router.get("/products/categories", response_model=list[CategoryResponse])
async def categories(
    session: AsyncSession = Depends(get_session),
) -> list[ProductCategory]:
    stmt = select(ProductCategory).order_by(ProductCategory.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


@router.get("/products/category/{slug}", response_model=CategoryWithProductsResponse)
async def category_by_slug(
    slug: str, session: AsyncSession = Depends(get_session)
) -> CategoryWithProductsResponse:
    stmt = select(ProductCategory).where(ProductCategory.idname == slug)
    category = (await session.execute(stmt)).scalar_one_or_none()
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")

    stmt = (
        select(Product)
        .where(Product.category_id == category.id)
        .order_by(Product.created_at.desc())
    )
    products = (await session.execute(stmt)).scalars().all()
    return CategoryWithProductsResponse(
        category=CategoryResponse.model_validate(category),
        products=[ProductResponse.model_validate(p) for p in products],
    )


@router.get("/products/product/{slug}", response_model=ProductWithCategoryResponse)
async def product_by_slug(
    slug: str, session: AsyncSession = Depends(get_session)
) -> Product:
    stmt = (
        select(Product)
        .options(selectinload(Product.category))
        .where(Product.idname == slug)
    )
    product = (await session.execute(stmt)).scalar_one_or_none()
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/services", response_model=list[ServiceResponse])
async def services(session: AsyncSession = Depends(get_session)) -> list[Service]:
    stmt = select(Service).order_by(Service.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


@router.get("/works", response_model=list[WorkResponse])
async def works(session: AsyncSession = Depends(get_session)) -> list[Work]:
    stmt = select(Work).order_by(Work.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


@router.get("/works/{slug}", response_model=WorkResponse)
async def work_by_slug(slug: str, session: AsyncSession = Depends(get_session)) -> Work:
    work = (
        await session.execute(select(Work).where(Work.idname == slug))
    ).scalar_one_or_none()
    if work is None:
        raise HTTPException(status_code=404, detail="Work not found")
    return work
