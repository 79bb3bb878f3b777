from collections.abc import AsyncGenerator
from typing import TypeVar
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.db import async_session
from src.base.models import BaseDbModel

ModelT = TypeVar("ModelT", bound=BaseDbModel)


async def get_session() -> AsyncGenerator[AsyncSession]:
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_or_404(
    session: AsyncSession, model: type[ModelT], entity_id: UUID, label: str
) -> ModelT:
    entity = await session.get(model, entity_id)
    if entity is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return entity
