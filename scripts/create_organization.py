#!/usr/bin/env python3
"""
Onboard a tenant directly in the database.

Prints the organization id, its API key and the snippet to paste into the
customer's <head>. Running it again for the same domain prints the
existing organization instead of creating a second one.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from schema_cache.config import settings
from schema_cache.db.models import Base
from schema_cache.db.session import AsyncSessionLocal, engine
from schema_cache.services.organizations import create_organization


async def onboard(domain: str, name: str | None, base_url: str | None, public_url: str):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        organization, created = await create_organization(
            db, domain=domain, name=name, base_url=base_url
        )

    print("[OK] Organization created" if created else "[OK] Organization already exists")
    print(f"  - Organization ID: {organization.id}")
    print(f"  - API Key: {organization.api_key}")
    print(f"  - Domain: {organization.domain}")
    print(f"  - Base URL: {organization.base_url}")
    print("\nAdd this to the site's <head>:")
    print(
        f'  <script src="{public_url}/schema-loader?client_id={organization.id}"></script>'
    )

    await engine.dispose()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create a schema cache organization")
    parser.add_argument("domain", help="Customer domain, e.g. example.com")
    parser.add_argument("--name", default=None, help="Display name")
    parser.add_argument(
        "--base-url",
        default=None,
        help="Site base URL (default: https://<domain>)",
    )
    parser.add_argument(
        "--public-url",
        default=settings.public_base_url or f"http://localhost:{settings.app_port}{settings.api_prefix}",
        help="Public URL of the schema endpoints",
    )

    args = parser.parse_args()

    asyncio.run(onboard(args.domain, args.name, args.base_url, args.public_url.rstrip("/")))
