"""
FastAPI dependencies for authentication and authorization.
"""
from functools import lru_cache
from typing import Annotated
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.features.auth.errors import BackendUnavailable, IdentityProviderError
from app.features.auth.gate import AuthContext, AuthorizationGate
from app.features.auth.identity import AppwriteIdentityProvider, IdentityProvider, JWTIdentityProvider
from app.utils import get_logger


log = get_logger(__name__)


@lru_cache
def get_identity_provider() -> IdentityProvider:
    """Identity provider selected by AUTH_PROVIDER."""
    try:
        if config.AUTH_PROVIDER == "jwt":
            return JWTIdentityProvider(
                config.JWT_SECRET or "",
                algorithms=config.JWT_ALGORITHMS,
                audience=config.JWT_AUDIENCE,
            )
        if config.AUTH_PROVIDER == "appwrite":
            return AppwriteIdentityProvider(config.APPWRITE_ENDPOINT, config.APPWRITE_PROJECT_ID)
        raise IdentityProviderError(f"Unknown AUTH_PROVIDER {config.AUTH_PROVIDER!r}; expected 'appwrite' or 'jwt'")
    except IdentityProviderError as e:
        log.error(f"Identity provider misconfigured: {e}")
        raise BackendUnavailable() from e


def get_authorization_gate(
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)]
) -> AuthorizationGate:
    return AuthorizationGate(provider)


async def require_employee(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
) -> AuthContext:
    """
    Require an active employee account.

    Usage:
        @router.get("/me")
        async def get_me(auth: AuthContext = Depends(require_employee)):
            return auth.account
    """
    return await gate.require_employee(request.headers, db)


def require_permission(key: str):
    """
    FastAPI dependency to require a specific permission key.

    Holders of the admin role pass every permission check.

    Usage:
        @router.patch("/accounts/{account_id}/roles")
        async def replace_roles(
            account_id: str,
            auth: AuthContext = Depends(require_permission("employees.manage"))
        ):
            ...
    """
    async def permission_dependency(
        request: Request,
        db: Annotated[AsyncSession, Depends(get_db)],
        gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
    ) -> AuthContext:
        return await gate.require_permission(request.headers, db, key)

    return permission_dependency


async def require_admin(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
) -> AuthContext:
    """Require the admin role."""
    return await gate.assert_admin(request.headers, db)
