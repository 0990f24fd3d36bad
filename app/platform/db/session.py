from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.platform.config import settings


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"timeout": 30}}
    return {
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "pool_size": 20,
        "max_overflow": 30,  # (burst capacity)
        "pool_timeout": 30,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    **_engine_options(settings.DATABASE_URL),
)
SessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False, autocommit=False
)


async def get_db():
    async with SessionLocal() as session:
        yield session


def enable_sqlite_foreign_keys(async_engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if settings.DATABASE_URL.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)


@asynccontextmanager
async def worker_session_factory(database_url: Optional[str] = None):
    """
    Session factory for code driven by asyncio.run(), e.g. a Celery task.

    Pooled connections are bound to the event loop that opened them, and every
    asyncio.run() starts a new loop. Each worker run therefore gets its own
    NullPool engine, disposed when the run ends.
    """
    database_url = database_url or settings.DATABASE_URL
    connect_args = {"timeout": 30} if database_url.startswith("sqlite") else {}

    worker_engine = create_async_engine(
        database_url,
        echo=False,
        poolclass=NullPool,
        connect_args=connect_args,
    )
    if database_url.startswith("sqlite"):
        enable_sqlite_foreign_keys(worker_engine)

    try:
        yield async_sessionmaker(
            worker_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
    finally:
        await worker_engine.dispose()
