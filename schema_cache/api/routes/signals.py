"""Content signal intake from the embedded loader."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from schema_cache.api.deps import get_database, read_json_object
from schema_cache.config import settings
from schema_cache.errors import ValidationError
from schema_cache.services.drift import record_signal
from schema_cache.services.organizations import get_organization
from schema_cache.urls import resolve_organization_id

router = APIRouter(prefix=settings.api_prefix, tags=["signals"])


@router.post("/collect-signal")
async def collect_signal(request: Request, db: AsyncSession = Depends(get_database)):
    """Record a page fingerprint and report whether it drifted."""
    body = await read_json_object(request)
    organization_id = resolve_organization_id(body)
    url = body.get("url")
    signals = body.get("signals")

    if (
        not organization_id
        or not url
        or not isinstance(url, str)
        or not isinstance(signals, dict)
        or not signals.get("content_hash")
    ):
        raise ValidationError("Missing required fields")

    if await get_organization(db, organization_id) is None:
        raise ValidationError("Unknown organization")

    result = await record_signal(db, organization_id, url, signals)

    return {"received": True, "drift_detected": result.drift_detected}
