#!/usr/bin/env python3
"""
Populate a running instance with an example organization and schemas.

The organization is created directly in the database; the schemas go
through the public update-schema endpoint so the full write path
(authentication, versioning, drift backlog clearing) is exercised.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from schema_cache.client import SchemaCacheClient, SchemaCacheClientError
from schema_cache.config import settings
from schema_cache.db.models import Base
from schema_cache.db.session import AsyncSessionLocal, engine
from schema_cache.services.organizations import create_organization

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_SCHEMAS = [
    (
        "https://example.com/",
        {
            "@context": "https://schema.org",
            "@type": "WebPage",
            "name": "Example Homepage",
            "description": "Welcome to our example website",
        },
    ),
    (
        "https://example.com/services/",
        {
            "@context": "https://schema.org",
            "@type": "Service",
            "name": "Our Services",
            "provider": {"@type": "Organization", "name": "Example Company"},
        },
    ),
    (
        "https://example.com/about/",
        {
            "@context": "https://schema.org",
            "@type": "AboutPage",
            "name": "About Us",
            "description": "Learn more about our company",
        },
    ),
    (
        "https://example.com/contact/",
        {
            "@context": "https://schema.org",
            "@type": "ContactPage",
            "name": "Contact Us",
            "mainEntity": {
                "@type": "Organization",
                "name": "Example Company",
                "contactPoint": {
                    "@type": "ContactPoint",
                    "telephone": "+1-555-555-5555",
                    "contactType": "Customer Service",
                },
            },
        },
    ),
]


async def seed(service_url: str):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        organization, _ = await create_organization(
            db,
            domain="example.com",
            name="Test Organization",
            base_url="https://example.com",
        )
    await engine.dispose()

    logger.info(f"Organization {organization.id} ready")

    failed = 0
    async with SchemaCacheClient(service_url, api_key=organization.api_key) as client:
        for page_url, schema_json in SAMPLE_SCHEMAS:
            try:
                version = await client.update_schema(organization.id, page_url, schema_json)
                print(f"  [OK] {page_url} (cache_version={version})")
            except SchemaCacheClientError as e:
                failed += 1
                print(f"  [FAIL] {page_url}: {e}")

    print("\nTest the schema loader:")
    print(f"  curl '{service_url}/schema-loader?client_id={organization.id}'")
    print("\nFetch a schema:")
    print(
        f"  curl '{service_url}/get-schema?client_id={organization.id}"
        f"&url=https://example.com/services/'"
    )
    print("\nCredentials:")
    print(f"  Organization ID: {organization.id}")
    print(f"  API Key: {organization.api_key}")

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Seed example schemas")
    parser.add_argument(
        "--service-url",
        default=f"http://localhost:{settings.app_port}{settings.api_prefix}",
        help="Base URL of the running schema endpoints",
    )

    args = parser.parse_args()

    asyncio.run(seed(args.service_url.rstrip("/")))
