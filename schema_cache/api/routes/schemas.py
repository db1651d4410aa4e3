"""Schema read and write endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from schema_cache import metrics
from schema_cache.api.deps import cache_control, get_database, read_json_object
from schema_cache.config import settings
from schema_cache.db.models import SOURCE_MODES
from schema_cache.errors import MissingAPIKeyError, ValidationError
from schema_cache.services.organizations import authenticate_organization
from schema_cache.services.schemas import get_page_schema, upsert_page_schema
from schema_cache.urls import canonicalize_params, resolve_organization_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix=settings.api_prefix, tags=["schemas"])

JSON_LD_MEDIA_TYPE = "application/ld+json"


@router.get("/get-schema")
async def get_schema(
    request: Request,
    url: Optional[str] = None,
    db: AsyncSession = Depends(get_database),
):
    """Public JSON-LD lookup for one page. Never authenticated."""
    organization_id = resolve_organization_id(request.query_params)
    if not organization_id or not url:
        raise ValidationError("Missing client_id or url")

    lookup = await get_page_schema(db, organization_id, url)

    if lookup is None:
        return JSONResponse(
            content={},
            media_type=JSON_LD_MEDIA_TYPE,
            headers={"Cache-Control": cache_control(settings.missing_schema_max_age)},
        )

    headers = {
        "Cache-Control": cache_control(settings.schema_cache_max_age),
        "ETag": lookup.etag,
        "Vary": "Origin",
    }

    if request.headers.get("if-none-match") == lookup.etag:
        return Response(status_code=304, headers=headers)

    return JSONResponse(
        content=lookup.schema_json,
        media_type=JSON_LD_MEDIA_TYPE,
        headers=headers,
    )


@router.post("/update-schema")
async def update_schema(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: AsyncSession = Depends(get_database),
):
    """Create or replace a page schema. Requires the organization's API key."""
    if not x_api_key:
        metrics.record_auth_failure("missing")
        raise MissingAPIKeyError()

    body = canonicalize_params(await read_json_object(request))
    organization_id = resolve_organization_id(body)
    page_url = body.get("page_url")
    schema_json = body.get("schema_json")
    content_hash = body.get("content_hash")
    source_mode = body.get("source_mode")

    if not organization_id or not page_url or not schema_json:
        raise ValidationError("Missing required fields")
    if not isinstance(page_url, str):
        raise ValidationError("page_url must be a string")
    if content_hash is not None and not isinstance(content_hash, str):
        raise ValidationError("content_hash must be a string")
    if source_mode is not None and source_mode not in SOURCE_MODES:
        raise ValidationError(f"source_mode must be one of: {', '.join(SOURCE_MODES)}")

    await authenticate_organization(db, organization_id, x_api_key)

    result = await upsert_page_schema(
        db,
        organization_id=organization_id,
        page_url=page_url,
        schema_json=schema_json,
        content_hash=content_hash,
        source_mode=source_mode,
    )

    return {"success": True, "cache_version": result.cache_version}
