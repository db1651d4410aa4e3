"""FastAPI dependencies and request helpers."""

import json
from typing import Any, AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from schema_cache.db.session import get_db
from schema_cache.errors import ValidationError


async def get_database() -> AsyncIterator[AsyncSession]:
    """Dependency for database session."""
    async for session in get_db():
        yield session
        break  # Only yield once, as FastAPI handles the session lifecycle


async def read_json_object(request: Request) -> dict[str, Any]:
    """
    Decode the request body as a JSON object.

    Raises:
        ValidationError: Body is not valid JSON or not an object
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON")

    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON")
    return body


def cache_control(max_age: int) -> str:
    return f"public, max-age={max_age}"
