"""HTTP client for operators and scripts talking to the public endpoints."""

import logging
from typing import Any, Optional

import httpx

from schema_cache.config import settings

logger = logging.getLogger(__name__)


class SchemaCacheClientError(Exception):
    """Non-2xx response from the service."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class SchemaCacheClient:
    """
    Async client for the schema cache endpoints.

    Usage:
        async with SchemaCacheClient("https://schema.example.com/functions/v1", api_key) as client:
            drift = await client.get_drift(org_id)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        base_url = base_url or f"http://localhost:{settings.app_port}{settings.api_prefix}"
        self.api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "SchemaCacheClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        return {"X-API-Key": self.api_key} if self.api_key else {}

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            message = response.json().get("error", response.text)
        except ValueError:
            message = response.text
        raise SchemaCacheClientError(response.status_code, message)

    async def get_schema(self, organization_id: str, page_url: str) -> tuple[Any, Optional[int]]:
        """
        Fetch the served schema for a page.

        Returns:
            (schema_json, cache_version) where cache_version is None when
            no schema is stored yet
        """
        response = await self._client.get(
            "/get-schema",
            params={"client_id": organization_id, "url": page_url},
        )
        self._raise_for_status(response)

        etag = response.headers.get("ETag")
        version = int(etag.strip('"')) if etag else None
        return response.json(), version

    async def update_schema(
        self,
        organization_id: str,
        page_url: str,
        schema_json: Any,
        content_hash: Optional[str] = None,
    ) -> int:
        """Push a schema and return the new cache_version."""
        payload: dict[str, Any] = {
            "organization_id": organization_id,
            "page_url": page_url,
            "schema_json": schema_json,
        }
        if content_hash:
            payload["content_hash"] = content_hash

        response = await self._client.post(
            "/update-schema", json=payload, headers=self._auth_headers()
        )
        self._raise_for_status(response)

        cache_version = response.json()["cache_version"]
        logger.info(f"Updated schema for {page_url} (cache_version={cache_version})")
        return cache_version

    async def collect_signal(
        self, organization_id: str, page_url: str, signals: dict[str, Any]
    ) -> bool:
        """Post a content signal; returns whether drift was detected."""
        response = await self._client.post(
            "/collect-signal",
            json={"client_id": organization_id, "url": page_url, "signals": signals},
        )
        self._raise_for_status(response)
        return response.json()["drift_detected"]

    async def get_drift(
        self, organization_id: str, limit: Optional[int] = None
    ) -> dict[str, Any]:
        """Return ``{drift_count, pages}`` for the organization."""
        params: dict[str, Any] = {"organization_id": organization_id}
        if limit is not None:
            params["limit"] = limit

        response = await self._client.get(
            "/get-drift", params=params, headers=self._auth_headers()
        )
        self._raise_for_status(response)
        return response.json()
