"""Signal Collector and Drift Reader."""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schema_cache import metrics
from schema_cache.db.models import DriftSignal, PageSchema
from schema_cache.urls import normalize_page_url

logger = logging.getLogger(__name__)


@dataclass
class SignalResult:
    drift_detected: bool
    previous_hash: Optional[str]


@dataclass
class DriftedPage:
    page_url: str
    current_hash: str
    previous_hash: Optional[str]
    # Taken from the newest retained signal for the page, not the oldest
    first_detected: datetime
    signals: Optional[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["first_detected"] = self.first_detected.isoformat()
        return data


async def record_signal(
    db: AsyncSession,
    organization_id: str,
    page_url: str,
    signals: dict[str, Any],
) -> SignalResult:
    """
    Append one drift signal for a page.

    The baseline is the content_hash on the page's stored schema, never an
    earlier signal. Drift is only reported when a baseline exists and
    differs from the observed hash. A row is written on every call.

    Args:
        db: Database session
        organization_id: Owning organization
        page_url: Page URL, normalized here
        signals: Loader payload; must contain content_hash

    Returns:
        SignalResult
    """
    normalized_url = normalize_page_url(page_url)
    content_hash = str(signals["content_hash"])

    stored_hash = await db.scalar(
        select(PageSchema.content_hash).where(
            PageSchema.organization_id == organization_id,
            PageSchema.page_url == normalized_url,
        )
    )
    previous_hash = stored_hash or None
    drift_detected = previous_hash is not None and previous_hash != content_hash

    db.add(
        DriftSignal(
            organization_id=organization_id,
            page_url=normalized_url,
            content_hash=content_hash,
            previous_hash=previous_hash,
            drift_detected=drift_detected,
            signals=signals,
        )
    )
    await db.commit()

    metrics.record_drift_signal(drift_detected)
    if drift_detected:
        logger.info(
            f"Drift detected for {organization_id} {normalized_url}: "
            f"{previous_hash} -> {content_hash}"
        )

    return SignalResult(drift_detected=drift_detected, previous_hash=previous_hash)


async def list_drifted_pages(
    db: AsyncSession,
    organization_id: str,
    limit: Optional[int] = None,
) -> list[DriftedPage]:
    """
    Latest unprocessed drift signal per page, newest first.

    Older unprocessed signals for the same page are left out of the result
    but stay unprocessed in storage until the page's schema is rewritten.

    Args:
        db: Database session
        organization_id: Owning organization
        limit: Maximum number of pages to return

    Returns:
        One DriftedPage per page URL
    """
    result = await db.execute(
        select(DriftSignal)
        .where(
            DriftSignal.organization_id == organization_id,
            DriftSignal.drift_detected.is_(True),
            DriftSignal.processed.is_(False),
        )
        .order_by(DriftSignal.created_at.desc(), DriftSignal.id.desc())
    )

    by_url: dict[str, DriftedPage] = {}
    for signal in result.scalars():
        if signal.page_url in by_url:
            continue
        by_url[signal.page_url] = DriftedPage(
            page_url=signal.page_url,
            current_hash=signal.content_hash,
            previous_hash=signal.previous_hash,
            first_detected=signal.created_at,
            signals=signal.signals,
        )
        if limit is not None and len(by_url) >= limit:
            break

    return list(by_url.values())
