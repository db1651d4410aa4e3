"""Shared fixtures: a throwaway SQLite database and an app client bound to it."""

import os

# Must be set before schema_cache.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_schema_cache.db")

from datetime import datetime

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from schema_cache.api.deps import get_database
from schema_cache.db.models import Base, DriftSignal, PageSchema
from schema_cache.main import app
from schema_cache.services.organizations import create_organization

API = "/functions/v1"
TEST_API_KEY = "test-api-key"
OTHER_API_KEY = "other-api-key"


@pytest.fixture
async def engine(tmp_path):
    """Create test database with tables."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """Create test client with database override."""
    async def get_test_database():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_database] = get_test_database

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def organization(db_session):
    org, _ = await create_organization(
        db_session, domain="example.com", name="Example", api_key=TEST_API_KEY
    )
    return org


@pytest.fixture
async def other_organization(db_session):
    org, _ = await create_organization(
        db_session, domain="other.com", name="Other", api_key=OTHER_API_KEY
    )
    return org


@pytest.fixture
def add_schema(session_factory):
    """Insert a page_schemas row directly, bypassing URL normalization."""
    async def _add(organization_id, page_url, schema_json=None, content_hash=None, cache_version=1):
        async with session_factory() as session:
            row = PageSchema(
                organization_id=organization_id,
                page_url=page_url,
                schema_json=schema_json or {"@context": "https://schema.org", "@type": "WebPage"},
                content_hash=content_hash,
                cache_version=cache_version,
            )
            session.add(row)
            await session.commit()
            return row

    return _add


@pytest.fixture
def add_signal(session_factory):
    """Insert a drift_signals row directly with an explicit created_at."""
    async def _add(
        organization_id,
        page_url,
        content_hash,
        previous_hash=None,
        drift_detected=True,
        processed=False,
        created_at=None,
    ):
        async with session_factory() as session:
            row = DriftSignal(
                organization_id=organization_id,
                page_url=page_url,
                content_hash=content_hash,
                previous_hash=previous_hash,
                drift_detected=drift_detected,
                processed=processed,
                signals={"content_hash": content_hash},
                created_at=created_at or datetime.utcnow(),
            )
            session.add(row)
            await session.commit()
            return row

    return _add
