"""Error taxonomy for the schema delivery endpoints.

Every error carries the HTTP status it maps to. Responses only ever expose
a human-readable ``error`` message, never a structured code.
"""

from fastapi import status


class SchemaCacheError(Exception):
    """Base class for request-level failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(SchemaCacheError):
    """Missing or malformed required fields."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(SchemaCacheError):
    """API key problems."""

    status_code = status.HTTP_403_FORBIDDEN


class MissingAPIKeyError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Missing API key"):
        super().__init__(message)


class InvalidAPIKeyError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message)
