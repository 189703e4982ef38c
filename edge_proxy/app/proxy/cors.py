"""
CORS helpers for the proxy endpoint.

The allowed origin is reflected back, never replaced by a wildcard, so the
header set is computed per request once the origin has been validated.
"""

from typing import Dict, Iterable, Optional

ALLOWED_METHODS = "GET, POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, X-Requested-With"
PREFLIGHT_MAX_AGE = "86400"  # 24 hours


def is_origin_allowed(origin: Optional[str], allowed_origins: Iterable[str]) -> bool:
    """
    Check an Origin header value against the allow-list.

    Matching is exact; a missing or empty origin is never allowed.
    """
    if not origin:
        return False
    return origin in allowed_origins


def build_cors_headers(origin: str) -> Dict[str, str]:
    """
    Build the CORS header set for a validated origin.

    Args:
        origin: Origin already checked with is_origin_allowed

    Returns:
        Headers attached to every response sent to that origin
    """
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Max-Age": PREFLIGHT_MAX_AGE,
        "Vary": "Origin",
    }
