"""Embeddable loader script."""

from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from fastapi.templating import Jinja2Templates

from schema_cache.api.deps import cache_control
from schema_cache.config import settings
from schema_cache.urls import resolve_organization_id

router = APIRouter(prefix=settings.api_prefix, tags=["loader"])

TEMPLATES_DIR = Path(__file__).resolve().parent.parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

JAVASCRIPT_MEDIA_TYPE = "application/javascript"


def loader_base_url(request: Request) -> str:
    """
    Base URL the loader calls back to.

    Behind the edge proxy the original host arrives in the forwarding
    header. Always https, since the hosting layer may report http.
    """
    if settings.public_base_url:
        return settings.public_base_url.rstrip("/")
    host = request.headers.get(settings.edge_forward_host_header) or request.url.netloc
    return f"https://{host}{settings.api_prefix}"


@router.get("/schema-loader")
async def schema_loader(request: Request, page_url: str = ""):
    """Return the per-organization JavaScript snippet customers embed."""
    organization_id = resolve_organization_id(request.query_params)
    if not organization_id:
        return PlainTextResponse(
            "// Missing client_id parameter",
            status_code=400,
            media_type=JAVASCRIPT_MEDIA_TYPE,
        )

    return templates.TemplateResponse(
        request,
        "schema_loader.js",
        {
            "client_id": organization_id,
            "base_url": loader_base_url(request),
            "override_url": page_url,
        },
        media_type=JAVASCRIPT_MEDIA_TYPE,
        headers={
            "Cache-Control": cache_control(settings.loader_cache_max_age),
            "Access-Control-Allow-Origin": "*",
        },
    )
