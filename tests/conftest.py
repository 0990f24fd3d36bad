"""
Test configuration and fixtures for the AccessScan AI API.

Each test gets its own SQLite file database. Engines use NullPool so the same
session factory works from pytest-asyncio's loop and from TestClient's loop.
"""
import os
import tempfile
from typing import Generator

test_db_path = tempfile.mktemp(suffix=".db")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{test_db_path}")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.features.scan.schemas.snapshot import PageSnapshot
from app.features.scan.services.store import get_scan_store
from app.features.scan.services.store.scan_store import ScanStore
from app.features.scan.workers.dispatcher import get_scan_dispatcher
from app.platform.db.models import Base
from app.platform.db.session import enable_sqlite_foreign_keys, get_db
from tests.fakes import RecordingDispatcher, make_snapshot


@pytest.fixture
def session_factory() -> Generator[async_sessionmaker, None, None]:
    """Fresh schema in a throwaway SQLite file."""
    path = tempfile.mktemp(suffix=".db")

    # Schema is created synchronously so no event loop is touched here
    schema_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(schema_engine)
    schema_engine.dispose()

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    enable_sqlite_foreign_keys(engine)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def store(session_factory) -> ScanStore:
    return ScanStore(session_factory)


@pytest.fixture
def synthetic_snapshot() -> PageSnapshot:
    return make_snapshot()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def test_app(session_factory, dispatcher):
    """FastAPI application wired to the per-test database and a recording dispatcher."""
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scan_store] = lambda: ScanStore(session_factory)
    app.dependency_overrides[get_scan_dispatcher] = lambda: dispatcher

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as test_client:
        yield test_client
