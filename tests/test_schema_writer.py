"""Tests for the update-schema endpoint and upsert_page_schema."""

import pytest
from sqlalchemy import select

from conftest import API, OTHER_API_KEY, TEST_API_KEY
from schema_cache.db.models import DriftSignal, PageSchema
from schema_cache.services import schemas as schema_service
from schema_cache.services.schemas import upsert_page_schema

SCHEMA = {"@context": "https://schema.org", "@type": "WebPage", "name": "About"}


def _payload(organization_id, page_url="https://x.com/a", schema_json=None, **extra):
    body = {
        "organization_id": organization_id,
        "page_url": page_url,
        "schema_json": schema_json or SCHEMA,
    }
    body.update(extra)
    return body


@pytest.mark.asyncio
async def test_versions_start_at_one_and_increase_by_one(db_session, organization):
    versions = []
    for i in range(4):
        result = await upsert_page_schema(
            db_session, organization.id, "https://x.com/a", {"n": i}
        )
        versions.append(result.cache_version)

    assert versions == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_first_write_inserts_later_writes_update(db_session, organization):
    first = await upsert_page_schema(db_session, organization.id, "https://x.com/a", SCHEMA)
    second = await upsert_page_schema(db_session, organization.id, "https://x.com/a", SCHEMA)

    assert first.created is True
    assert second.created is False

    rows = (await db_session.execute(select(PageSchema))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_trailing_slashes_share_one_row(db_session, organization):
    await upsert_page_schema(db_session, organization.id, "https://x.com/a/", SCHEMA)
    result = await upsert_page_schema(db_session, organization.id, "https://x.com/a", SCHEMA)

    assert result.cache_version == 2
    stored = await db_session.scalar(select(PageSchema.page_url))
    assert stored == "https://x.com/a"


@pytest.mark.asyncio
async def test_update_clears_unprocessed_signals_for_page_only(
    session_factory, db_session, organization, add_signal
):
    await add_signal(organization.id, "https://x.com/a", "h1")
    await add_signal(organization.id, "https://x.com/a", "h2", drift_detected=False)
    await add_signal(organization.id, "https://x.com/b", "h3")

    result = await upsert_page_schema(db_session, organization.id, "https://x.com/a/", SCHEMA)
    assert result.cleared_signals == 2

    async with session_factory() as session:
        signals = (
            await session.execute(select(DriftSignal).order_by(DriftSignal.id))
        ).scalars().all()

    by_url = {(s.page_url, s.content_hash): s for s in signals}
    assert by_url[("https://x.com/a", "h1")].processed is True
    assert by_url[("https://x.com/a", "h1")].processed_at is not None
    assert by_url[("https://x.com/a", "h2")].processed is True
    assert by_url[("https://x.com/b", "h3")].processed is False


@pytest.mark.asyncio
async def test_concurrent_first_write_retries_as_update(
    session_factory, db_session, organization, add_schema, add_signal, monkeypatch
):
    organization_id = organization.id
    await add_schema(organization_id, "https://x.com/a", cache_version=3)
    await add_signal(organization_id, "https://x.com/a", "h1")

    real_bump = schema_service._bump_existing
    calls = []

    async def bump_after_losing_race(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            # Another writer inserts between our UPDATE and INSERT
            return None
        return await real_bump(*args, **kwargs)

    monkeypatch.setattr(schema_service, "_bump_existing", bump_after_losing_race)

    result = await upsert_page_schema(db_session, organization_id, "https://x.com/a", SCHEMA)

    assert len(calls) == 2
    assert result.cache_version == 4
    assert result.created is False
    assert result.cleared_signals == 1

    async with session_factory() as session:
        rows = (await session.execute(select(PageSchema))).scalars().all()
        signal = await session.scalar(select(DriftSignal))

    assert len(rows) == 1
    assert rows[0].cache_version == 4
    assert rows[0].schema_json == SCHEMA
    assert signal.processed is True


@pytest.mark.asyncio
async def test_api_update_returns_cache_version(client, organization):
    headers = {"X-API-Key": TEST_API_KEY}

    first = await client.post(f"{API}/update-schema", json=_payload(organization.id), headers=headers)
    second = await client.post(f"{API}/update-schema", json=_payload(organization.id), headers=headers)

    assert first.status_code == 200
    assert first.json() == {"success": True, "cache_version": 1}
    assert second.json() == {"success": True, "cache_version": 2}


@pytest.mark.asyncio
async def test_api_accepts_legacy_client_id(client, organization):
    body = _payload(organization.id)
    body["client_id"] = body.pop("organization_id")

    response = await client.post(
        f"{API}/update-schema", json=body, headers={"X-API-Key": TEST_API_KEY}
    )

    assert response.status_code == 200
    assert response.json()["cache_version"] == 1


@pytest.mark.asyncio
async def test_api_stores_content_hash(client, session_factory, organization):
    await client.post(
        f"{API}/update-schema",
        json=_payload(organization.id, content_hash="abc123"),
        headers={"X-API-Key": TEST_API_KEY},
    )

    async with session_factory() as session:
        stored = await session.scalar(select(PageSchema.content_hash))
    assert stored == "abc123"


@pytest.mark.asyncio
async def test_api_missing_key_is_401_without_mutation(client, session_factory, organization):
    response = await client.post(f"{API}/update-schema", json=_payload(organization.id))

    assert response.status_code == 401
    assert response.json() == {"error": "Missing API key"}

    async with session_factory() as session:
        assert (await session.execute(select(PageSchema))).first() is None


@pytest.mark.asyncio
async def test_api_wrong_key_is_403_without_mutation(
    client, session_factory, organization, other_organization
):
    response = await client.post(
        f"{API}/update-schema",
        json=_payload(organization.id),
        headers={"X-API-Key": OTHER_API_KEY},
    )

    assert response.status_code == 403
    assert response.json() == {"error": "Invalid API key"}

    async with session_factory() as session:
        assert (await session.execute(select(PageSchema))).first() is None


@pytest.mark.asyncio
async def test_api_unknown_organization_is_403(client):
    response = await client.post(
        f"{API}/update-schema",
        json=_payload("does-not-exist"),
        headers={"X-API-Key": TEST_API_KEY},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_api_invalid_json_is_400(client, organization):
    response = await client.post(
        f"{API}/update-schema",
        content=b"{not json",
        headers={"X-API-Key": TEST_API_KEY, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON"}


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["organization_id", "page_url", "schema_json"])
async def test_api_missing_fields_is_400(client, organization, missing):
    body = _payload(organization.id)
    del body[missing]

    response = await client.post(
        f"{API}/update-schema", json=body, headers={"X-API-Key": TEST_API_KEY}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}


@pytest.mark.asyncio
async def test_api_wrong_method_is_405(client):
    response = await client.get(f"{API}/update-schema")

    assert response.status_code == 405
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_api_source_mode(client, session_factory, organization):
    headers = {"X-API-Key": TEST_API_KEY}

    response = await client.post(
        f"{API}/update-schema",
        json=_payload(organization.id, source_mode="generation"),
        headers=headers,
    )
    assert response.status_code == 200

    # omitted on update: unchanged
    await client.post(f"{API}/update-schema", json=_payload(organization.id), headers=headers)

    async with session_factory() as session:
        stored = await session.scalar(select(PageSchema.source_mode))
    assert stored == "generation"

    bad = await client.post(
        f"{API}/update-schema",
        json=_payload(organization.id, source_mode="handwritten"),
        headers=headers,
    )
    assert bad.status_code == 400
