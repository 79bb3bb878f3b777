import os
from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from uuid import uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.auth import AuthUser, Role
from src.base.db import enable_sqlite_foreign_keys
from src.base.models import BaseDbModel
from tests.helpers import FakeStorage

USE_POSTGRES = os.environ.get("GATEWORKS_TEST_POSTGRES", "0") == "1"


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str | None]:
    if not USE_POSTGRES:
        yield None
        return

    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:17") as pg:
        # Convert sync URL to async (postgresql:// -> postgresql+asyncpg://)
        sync_url = pg.get_connection_url()
        yield sync_url.replace("postgresql+psycopg2://", "postgresql+asyncpg://")


@pytest.fixture
async def db_engine(
    postgres_url: str | None, tmp_path: Path
) -> AsyncGenerator[AsyncEngine]:
    # Import all models so metadata knows about them
    import src.catalog.models  # noqa: F401
    import src.facility.models  # noqa: F401
    import src.user.models  # noqa: F401

    url = postgres_url or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", enable_sqlite_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(BaseDbModel.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(BaseDbModel.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def test_session_factory(
    db_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(
    test_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with test_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def admin_user() -> AuthUser:
    return AuthUser(
        id=uuid4(), email="admin@example.com", role=Role.ADMIN, profile=None
    )


@pytest.fixture
def member_user() -> AuthUser:
    return AuthUser(
        id=uuid4(), email="member@example.com", role=Role.MEMBER, profile=None
    )
