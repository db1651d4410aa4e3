"""Drift backlog endpoint for operators."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from schema_cache.api.deps import get_database
from schema_cache.config import settings
from schema_cache.errors import ValidationError
from schema_cache.services.drift import list_drifted_pages
from schema_cache.services.organizations import authenticate_organization
from schema_cache.urls import resolve_organization_id

router = APIRouter(prefix=settings.api_prefix, tags=["drift"])


@router.get("/get-drift")
async def get_drift(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of pages"),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: AsyncSession = Depends(get_database),
):
    """List pages whose live content no longer matches their stored schema."""
    organization_id = resolve_organization_id(request.query_params)
    if not organization_id or not x_api_key:
        raise ValidationError("Missing organization_id or API key")

    await authenticate_organization(db, organization_id, x_api_key)

    pages = await list_drifted_pages(db, organization_id, limit=limit)

    return {
        "drift_count": len(pages),
        "pages": [page.to_dict() for page in pages],
    }
