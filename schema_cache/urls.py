"""Page URL normalization and request parameter mapping.

Public endpoints historically called the tenant ``client_id``; storage and
newer callers use ``organization_id``. The translation lives here and
nowhere else.
"""

from typing import Any, Mapping, Optional

CANONICAL_ORGANIZATION_PARAM = "organization_id"

# legacy name -> canonical name
LEGACY_PARAM_ALIASES: dict[str, str] = {
    "client_id": CANONICAL_ORGANIZATION_PARAM,
}


def normalize_page_url(url: str) -> str:
    """Strip all trailing slashes from a page URL."""
    return url.rstrip("/")


def fallback_page_url(normalized_url: str) -> str:
    """Alternate lookup key for rows written before normalization was enforced."""
    return normalized_url + "/"


def canonicalize_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """
    Translate legacy parameter names to their canonical form.

    When both the legacy and canonical names are present, the canonical
    value wins.

    Args:
        params: Query parameters or a decoded JSON body

    Returns:
        New dict keyed by canonical names
    """
    canonical: dict[str, Any] = {}
    for key, value in params.items():
        target = LEGACY_PARAM_ALIASES.get(key)
        if target is None:
            canonical[key] = value
        elif target not in params:
            canonical[target] = value
    return canonical


def resolve_organization_id(params: Mapping[str, Any]) -> Optional[str]:
    """Return the organization id from canonical or legacy params, or None."""
    value = canonicalize_params(params).get(CANONICAL_ORGANIZATION_PARAM)
    if value is None or value == "":
        return None
    return str(value)
