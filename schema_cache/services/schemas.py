"""Schema Writer and Schema Reader."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schema_cache import metrics
from schema_cache.db.models import DriftSignal, PageSchema
from schema_cache.logging_config import get_logger
from schema_cache.urls import fallback_page_url, normalize_page_url

logger = logging.getLogger(__name__)


@dataclass
class SchemaWriteResult:
    cache_version: int
    created: bool
    cleared_signals: int


@dataclass
class SchemaLookup:
    page_url: str
    schema_json: Any
    cache_version: int
    used_fallback: bool = False

    @property
    def etag(self) -> str:
        return f'"{self.cache_version}"'


async def _bump_existing(
    db: AsyncSession,
    organization_id: str,
    page_url: str,
    schema_json: Any,
    content_hash: Optional[str],
    source_mode: Optional[str],
    now: datetime,
) -> Optional[int]:
    """Rewrite an existing row and increment its version in one statement."""
    values = {
        "schema_json": schema_json,
        "content_hash": content_hash,
        "cache_version": PageSchema.cache_version + 1,
        "updated_at": now,
    }
    if source_mode is not None:
        values["source_mode"] = source_mode

    result = await db.execute(
        update(PageSchema)
        .where(
            PageSchema.organization_id == organization_id,
            PageSchema.page_url == page_url,
        )
        .values(**values)
        .returning(PageSchema.cache_version)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one_or_none()


async def _clear_drift_backlog(
    db: AsyncSession,
    organization_id: str,
    page_url: str,
    now: datetime,
) -> int:
    result = await db.execute(
        update(DriftSignal)
        .where(
            DriftSignal.organization_id == organization_id,
            DriftSignal.page_url == page_url,
            DriftSignal.processed.is_(False),
        )
        .values(processed=True, processed_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def upsert_page_schema(
    db: AsyncSession,
    organization_id: str,
    page_url: str,
    schema_json: Any,
    content_hash: Optional[str] = None,
    source_mode: Optional[str] = None,
) -> SchemaWriteResult:
    """
    Create or replace the schema for a page and clear its drift backlog.

    The first write for a page stores version 1; each later write stores
    the previous version plus one. The increment happens inside the UPDATE
    itself, so concurrent writers never lose a bump. When two first writes
    race, the loser's INSERT hits the unique constraint and is retried as
    an update.

    Every unprocessed drift signal for the page is marked processed,
    whether or not it motivated this write.

    Args:
        db: Database session
        organization_id: Owning organization (already authenticated)
        page_url: Page URL, normalized here
        schema_json: Opaque JSON-LD document, stored verbatim
        content_hash: Fingerprint of the page content the schema describes
        source_mode: generation, projection or external; kept as-is on
            update when omitted, "external" on insert

    Returns:
        SchemaWriteResult with the resulting cache_version
    """
    normalized_url = normalize_page_url(page_url)
    content_hash = content_hash or None
    log = get_logger(__name__, organization_id=organization_id, page_url=normalized_url)

    now = datetime.utcnow()
    created = False
    version = await _bump_existing(
        db, organization_id, normalized_url, schema_json, content_hash, source_mode, now
    )

    if version is None:
        db.add(
            PageSchema(
                organization_id=organization_id,
                page_url=normalized_url,
                schema_json=schema_json,
                content_hash=content_hash,
                cache_version=1,
                source_mode=source_mode or "external",
                created_at=now,
                updated_at=now,
            )
        )
        try:
            await db.flush()
            version = 1
            created = True
        except IntegrityError:
            await db.rollback()
            log.info("Concurrent first write detected, retrying as update")
            version = await _bump_existing(
                db, organization_id, normalized_url, schema_json, content_hash, source_mode, now
            )
            if version is None:
                raise

    cleared = await _clear_drift_backlog(db, organization_id, normalized_url, now)
    await db.commit()

    metrics.record_schema_update(created)
    metrics.record_signals_cleared(cleared)
    log.info(
        f"{'Inserted' if created else 'Updated'} schema for {normalized_url} "
        f"(cache_version={version}, cleared_signals={cleared})"
    )

    return SchemaWriteResult(cache_version=version, created=created, cleared_signals=cleared)


async def _find_schema(
    db: AsyncSession, organization_id: str, page_url: str
) -> Optional[PageSchema]:
    result = await db.execute(
        select(PageSchema).where(
            PageSchema.organization_id == organization_id,
            PageSchema.page_url == page_url,
        )
    )
    return result.scalar_one_or_none()


async def get_page_schema(
    db: AsyncSession, organization_id: str, page_url: str
) -> Optional[SchemaLookup]:
    """
    Find the schema for a page, tolerating trailing-slash history.

    The normalized URL is tried first, then the same URL with one trailing
    slash. Lookups are always scoped to ``organization_id``.

    Returns:
        SchemaLookup, or None when neither form is stored
    """
    normalized_url = normalize_page_url(page_url)

    row = await _find_schema(db, organization_id, normalized_url)
    used_fallback = False
    if row is None:
        row = await _find_schema(db, organization_id, fallback_page_url(normalized_url))
        used_fallback = row is not None

    if row is None:
        metrics.record_schema_lookup("missing")
        logger.debug(f"No schema for {organization_id} {normalized_url}")
        return None

    metrics.record_schema_lookup("fallback" if used_fallback else "exact")
    return SchemaLookup(
        page_url=row.page_url,
        schema_json=row.schema_json,
        cache_version=row.cache_version,
        used_fallback=used_fallback,
    )
