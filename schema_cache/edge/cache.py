"""Redis-backed shared response cache for the edge proxy.

Entries are keyed by the full request URL (query string included, headers
ignored) and hold the upstream status, headers and body.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import redis.asyncio as redis

from schema_cache import metrics
from schema_cache.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CachedResponse:
    status_code: int
    headers: dict[str, str]
    body: bytes


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class EdgeCache:
    """
    Shared cache for proxied GET responses.

    Reads that fail are treated as misses. Writes never raise: they run
    after the client already has its response.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url or settings.redis_url
        self.ttl = ttl_seconds or settings.edge_cache_ttl_seconds
        self._redis: Optional[redis.Redis] = client

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            # Bodies are stored as raw bytes
            self._redis = redis.from_url(self.redis_url, decode_responses=False)
        return self._redis

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _get_cache_key(self, url: str) -> str:
        """Generate cache key from URL."""
        url_hash = hashlib.md5(url.encode()).hexdigest()
        return f"edge_cache:{url_hash}"

    async def lookup(self, url: str) -> Optional[CachedResponse]:
        """
        Get the cached response for a URL.

        Args:
            url: Full request URL

        Returns:
            CachedResponse or None on miss or error
        """
        try:
            redis_client = await self._get_redis()
            cached = await redis_client.hgetall(self._get_cache_key(url))
        except Exception as e:
            logger.debug(f"Error reading edge cache for {url}: {e}")
            return None

        if not cached:
            return None

        fields = {_text(key): value for key, value in cached.items()}
        try:
            return CachedResponse(
                status_code=int(_text(fields["status"])),
                headers=json.loads(_text(fields["headers"])),
                body=fields["body"] if isinstance(fields["body"], bytes) else str(fields["body"]).encode(),
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Discarding malformed edge cache entry for {url}: {e}")
            return None

    async def store(
        self,
        url: str,
        status_code: int,
        headers: dict[str, str],
        body: bytes,
    ) -> None:
        """
        Store a response copy for ``self.ttl`` seconds.

        Args:
            url: Full request URL
            status_code: Upstream status code
            headers: Headers to replay on a hit
            body: Response body
        """
        try:
            redis_client = await self._get_redis()
            cache_key = self._get_cache_key(url)

            await redis_client.hset(
                cache_key,
                mapping={
                    "status": str(status_code),
                    "headers": json.dumps(headers),
                    "body": body,
                },
            )
            await redis_client.expire(cache_key, self.ttl)

            logger.debug(f"Cached edge response for {url} (TTL: {self.ttl}s)")

        except Exception as e:
            metrics.record_edge_store_error()
            logger.warning(f"Error caching edge response for {url}: {e}")
