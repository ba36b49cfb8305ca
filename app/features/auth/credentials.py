"""
Bearer token extraction from request headers.
"""
from collections.abc import Mapping
from typing import Any, List, Optional
from fastapi.security.utils import get_authorization_scheme_param


def _authorization_values(headers: Mapping[str, Any]) -> List[Any]:
    # Starlette Headers keeps repeated headers apart
    getlist = getattr(headers, "getlist", None)
    if callable(getlist):
        return list(getlist("authorization"))

    values: List[Any] = []
    for key, value in headers.items():
        if key.lower() != "authorization":
            continue
        if isinstance(value, (list, tuple)):
            values.extend(value)
        else:
            values.append(value)
    return values


def get_bearer_token(headers: Mapping[str, Any]) -> Optional[str]:
    """
    Extract the token from an `Authorization: Bearer <token>` header.

    Lookup of the header name and of the scheme is case-insensitive. Returns None
    when the header is absent, repeated, not a Bearer credential, or empty.
    """
    values = _authorization_values(headers)
    if len(values) != 1 or not isinstance(values[0], str):
        return None

    scheme, token = get_authorization_scheme_param(values[0].strip())
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
