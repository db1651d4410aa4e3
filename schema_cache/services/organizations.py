"""Tenant lookup, onboarding and API key checks."""

import logging
import secrets
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schema_cache import metrics
from schema_cache.db.models import Organization
from schema_cache.errors import InvalidAPIKeyError, MissingAPIKeyError

logger = logging.getLogger(__name__)


async def get_organization(db: AsyncSession, organization_id: str) -> Optional[Organization]:
    result = await db.execute(
        select(Organization).where(Organization.id == organization_id)
    )
    return result.scalar_one_or_none()


def _keys_match(supplied: str, stored: str) -> bool:
    return secrets.compare_digest(supplied.encode("utf-8"), stored.encode("utf-8"))


async def authenticate_organization(
    db: AsyncSession,
    organization_id: str,
    api_key: Optional[str],
) -> Organization:
    """
    Verify that ``api_key`` is the shared secret of ``organization_id``.

    Unknown organizations are reported the same way as a wrong key so the
    response does not reveal which ids exist.

    Args:
        db: Database session
        organization_id: Canonical organization id
        api_key: Value of the X-API-Key header

    Returns:
        The authenticated Organization

    Raises:
        MissingAPIKeyError: No key supplied
        InvalidAPIKeyError: Unknown organization or key mismatch
    """
    if not api_key:
        metrics.record_auth_failure("missing")
        raise MissingAPIKeyError()

    organization = await get_organization(db, organization_id)
    if organization is None or not _keys_match(api_key, organization.api_key):
        metrics.record_auth_failure("invalid")
        logger.warning(f"Rejected API key for organization {organization_id}")
        raise InvalidAPIKeyError()

    return organization


async def create_organization(
    db: AsyncSession,
    domain: str,
    name: Optional[str] = None,
    base_url: Optional[str] = None,
    settings: Optional[dict[str, Any]] = None,
    api_key: Optional[str] = None,
) -> tuple[Organization, bool]:
    """
    Onboard a tenant, or return the existing one for the same domain.

    Returns:
        (organization, created)
    """
    result = await db.execute(select(Organization).where(Organization.domain == domain))
    existing = result.scalar_one_or_none()
    if existing is not None:
        return existing, False

    organization = Organization(
        domain=domain,
        name=name,
        base_url=base_url or f"https://{domain}",
        settings=settings or {},
    )
    if api_key:
        organization.api_key = api_key

    db.add(organization)
    await db.commit()
    await db.refresh(organization)

    logger.info(f"Created organization {organization.id} for {domain}")
    return organization, True
