"""Edge proxy application.

Sits in front of the origin service. GETs to the schema endpoint are
served from the shared cache when possible; everything else is relayed
as-is.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import BackgroundTasks, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from schema_cache import metrics
from schema_cache.config import settings
from schema_cache.edge.cache import EdgeCache
from schema_cache.logging_config import setup_logging

logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Not forwarded in either direction
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
    # httpx hands back decoded bodies
    "content-encoding",
}

# Lowercase so they replace, not duplicate, relayed upstream headers
CORS_HEADERS = {
    "access-control-allow-origin": "*",
    "access-control-expose-headers": "X-Cache",
}

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-API-Key",
    "Access-Control-Max-Age": "86400",
}


def _filter_headers(headers: httpx.Headers | dict) -> dict[str, str]:
    return {
        key.lower(): value
        for key, value in headers.items()
        if key.lower() not in HOP_BY_HOP_HEADERS
    }


def create_app(
    origin_url: Optional[str] = None,
    cache: Optional[EdgeCache] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the edge proxy.

    Args:
        origin_url: Upstream base URL (defaults to settings.origin_url)
        cache: Shared cache (defaults to a Redis-backed EdgeCache)
        transport: httpx transport override for the upstream client
    """
    edge_cache = cache or EdgeCache()
    upstream = httpx.AsyncClient(
        base_url=(origin_url or settings.origin_url).rstrip("/"),
        timeout=settings.edge_upstream_timeout,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Edge cache proxying to {upstream.base_url}")
        yield
        await upstream.aclose()
        await edge_cache.close()

    app = FastAPI(title="Schema Cache Edge", version="0.1.0", lifespan=lifespan)
    app.state.cache = edge_cache
    app.state.upstream = upstream

    async def forward(request: Request) -> httpx.Response:
        headers = _filter_headers(request.headers)
        headers[settings.edge_forward_host_header.lower()] = request.headers.get(
            "host", request.url.netloc
        )
        body = None
        if request.method not in ("GET", "HEAD"):
            body = await request.body()

        return await upstream.request(
            request.method,
            request.url.path,
            params=request.query_params.multi_items(),
            headers=headers,
            content=body,
        )

    @app.api_route("/{path:path}", methods=PROXY_METHODS)
    async def proxy(path: str, request: Request, background_tasks: BackgroundTasks):
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=PREFLIGHT_HEADERS)

        url = str(request.url)
        cacheable = (
            settings.edge_cache_enabled
            and request.method == "GET"
            and settings.edge_cache_path in request.url.path
        )

        if cacheable:
            cached = await edge_cache.lookup(url)
            if cached is not None:
                metrics.record_edge_request("HIT")
                logger.debug(f"Edge HIT {url}")
                headers = {**cached.headers, **CORS_HEADERS, "x-cache": "HIT"}
                return Response(
                    content=cached.body,
                    status_code=cached.status_code,
                    headers=headers,
                )

        try:
            origin_response = await forward(request)
        except httpx.HTTPError as e:
            logger.error(f"Origin request failed for {url}: {e}")
            return JSONResponse(
                status_code=502, content={"error": "Bad gateway"}, headers=CORS_HEADERS
            )

        headers = _filter_headers(origin_response.headers)

        if not cacheable:
            metrics.record_edge_request("PASS")
            return Response(
                content=origin_response.content,
                status_code=origin_response.status_code,
                headers=headers,
            )

        metrics.record_edge_request("MISS")
        logger.debug(f"Edge MISS {url} ({origin_response.status_code})")
        headers.update(CORS_HEADERS)
        headers["cache-control"] = f"public, max-age={edge_cache.ttl}"

        # Error responses are relayed but never cached
        if origin_response.status_code == 200:
            background_tasks.add_task(
                edge_cache.store,
                url,
                origin_response.status_code,
                dict(headers),
                origin_response.content,
            )

        headers["x-cache"] = "MISS"
        return Response(
            content=origin_response.content,
            status_code=origin_response.status_code,
            headers=headers,
        )

    return app


app = create_app()


if __name__ == "__main__":
    setup_logging()
    uvicorn.run(
        "schema_cache.edge.app:app",
        host=settings.edge_host,
        port=settings.edge_port,
        log_level=settings.log_level.lower(),
    )
