"""Pytest configuration and fixtures for integration tests."""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from core.infrastructure.database.config import get_session_factory
from core.infrastructure.database.models import Base
from core.infrastructure.database.repositories import SqlAlchemyPersistenceStore


# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def sql_store(test_engine) -> SqlAlchemyPersistenceStore:
    return SqlAlchemyPersistenceStore(get_session_factory(test_engine))


@pytest.fixture
def test_client(monkeypatch) -> TestClient:
    """FastAPI test client over fresh in-memory collaborators."""
    monkeypatch.setenv("WORKFLOW_PERSISTENCE_BACKEND", "memory")
    monkeypatch.delenv("LEDGER_RPC_URL", raising=False)

    from api import dependencies
    from api.main import app
    from core.settings import get_app_settings

    get_app_settings.cache_clear()
    dependencies.reset_dependencies()

    with TestClient(app) as client:
        yield client

    dependencies.reset_dependencies()
    get_app_settings.cache_clear()
