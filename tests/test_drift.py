"""Tests for the get-drift endpoint and list_drifted_pages."""

from datetime import datetime, timedelta

import pytest

from conftest import API, OTHER_API_KEY, TEST_API_KEY
from schema_cache.services.drift import list_drifted_pages

T0 = datetime(2026, 1, 1, 12, 0, 0)


async def _get_drift(client, organization_id, api_key=TEST_API_KEY, **params):
    headers = {"X-API-Key": api_key} if api_key else {}
    return await client.get(
        f"{API}/get-drift",
        params={"organization_id": organization_id, **params},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_one_entry_per_url_from_newest_signal(db_session, organization, add_signal):
    await add_signal(organization.id, "https://x.com/a", "a1", "base", created_at=T0)
    await add_signal(organization.id, "https://x.com/a", "a2", "base", created_at=T0 + timedelta(minutes=5))
    await add_signal(organization.id, "https://x.com/b", "b1", "base", created_at=T0 + timedelta(minutes=1))

    pages = await list_drifted_pages(db_session, organization.id)

    assert [p.page_url for p in pages] == ["https://x.com/a", "https://x.com/b"]
    assert pages[0].current_hash == "a2"
    assert pages[0].previous_hash == "base"


@pytest.mark.asyncio
async def test_first_detected_comes_from_newest_signal(db_session, organization, add_signal):
    newest = T0 + timedelta(hours=2)
    await add_signal(organization.id, "https://x.com/a", "a1", created_at=T0)
    await add_signal(organization.id, "https://x.com/a", "a2", created_at=newest)

    pages = await list_drifted_pages(db_session, organization.id)

    assert pages[0].first_detected == newest


@pytest.mark.asyncio
async def test_processed_and_non_drift_signals_excluded(db_session, organization, add_signal):
    await add_signal(organization.id, "https://x.com/a", "a1", processed=True)
    await add_signal(organization.id, "https://x.com/b", "b1", drift_detected=False)

    assert await list_drifted_pages(db_session, organization.id) == []


@pytest.mark.asyncio
async def test_limit_caps_pages(db_session, organization, add_signal):
    for i in range(3):
        await add_signal(
            organization.id, f"https://x.com/{i}", f"h{i}", created_at=T0 + timedelta(minutes=i)
        )

    pages = await list_drifted_pages(db_session, organization.id, limit=2)

    assert [p.page_url for p in pages] == ["https://x.com/2", "https://x.com/1"]


@pytest.mark.asyncio
async def test_api_response_shape(client, organization, add_signal):
    await add_signal(organization.id, "https://x.com/a", "new", "old", created_at=T0)

    response = await _get_drift(client, organization.id)

    assert response.status_code == 200
    assert response.json() == {
        "drift_count": 1,
        "pages": [
            {
                "page_url": "https://x.com/a",
                "current_hash": "new",
                "previous_hash": "old",
                "first_detected": T0.isoformat(),
                "signals": {"content_hash": "new"},
            }
        ],
    }


@pytest.mark.asyncio
async def test_api_legacy_client_id(client, organization, add_signal):
    await add_signal(organization.id, "https://x.com/a", "new", "old")

    response = await client.get(
        f"{API}/get-drift",
        params={"client_id": organization.id},
        headers={"X-API-Key": TEST_API_KEY},
    )

    assert response.json()["drift_count"] == 1


@pytest.mark.asyncio
async def test_api_isolated_per_organization(
    client, organization, other_organization, add_signal
):
    await add_signal(organization.id, "https://x.com/a", "new", "old")

    response = await _get_drift(client, other_organization.id, api_key=OTHER_API_KEY)

    assert response.json() == {"drift_count": 0, "pages": []}


@pytest.mark.asyncio
async def test_api_missing_key_is_400(client, organization):
    response = await _get_drift(client, organization.id, api_key=None)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_api_missing_organization_is_400(client):
    response = await client.get(f"{API}/get-drift", headers={"X-API-Key": TEST_API_KEY})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_api_wrong_key_is_403(client, organization, other_organization):
    response = await _get_drift(client, organization.id, api_key=OTHER_API_KEY)

    assert response.status_code == 403
    assert response.json() == {"error": "Invalid API key"}


@pytest.mark.asyncio
async def test_api_invalid_limit_is_400(client, organization):
    response = await _get_drift(client, organization.id, limit=0)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_signal_then_update_clears_backlog(client, organization, add_schema):
    await add_schema(organization.id, "https://x.com/a", content_hash="old")

    for content_hash in ("new1", "new2"):
        await client.post(
            f"{API}/collect-signal",
            json={
                "client_id": organization.id,
                "url": "https://x.com/a",
                "signals": {"content_hash": content_hash},
            },
        )

    drift = await _get_drift(client, organization.id)
    assert drift.json()["drift_count"] == 1
    assert drift.json()["pages"][0]["current_hash"] == "new2"

    update = await client.post(
        f"{API}/update-schema",
        json={
            "organization_id": organization.id,
            "page_url": "https://x.com/a",
            "schema_json": {"@context": "https://schema.org"},
            "content_hash": "new2",
        },
        headers={"X-API-Key": TEST_API_KEY},
    )
    assert update.json()["cache_version"] == 2

    drift = await _get_drift(client, organization.id)
    assert drift.json() == {"drift_count": 0, "pages": []}
