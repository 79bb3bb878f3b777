import os

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

DATABASE_URI = os.environ.get(
    "GATEWORKS_DATABASE_URI", "sqlite+aiosqlite:///./gateworks.db"
)


def enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # ON DELETE CASCADE / SET NULL are ignored by SQLite unless switched on
    # for every connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = create_async_engine(DATABASE_URI)
if engine.dialect.name == "sqlite":
    event.listen(engine.sync_engine, "connect", enable_sqlite_foreign_keys)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
