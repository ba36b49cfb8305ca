"""
Authorization outcomes that end a request.

Each denial is an HTTPException so FastAPI writes the terminal response and the
route body never runs. BackendUnavailable is kept apart from the denials: it
means the decision could not be made, not that the caller was refused.
"""
from typing import Optional
from fastapi import HTTPException, status


class IdentityProviderError(Exception):
    """The identity provider failed for a reason other than a bad token."""


class AuthorizationError(HTTPException):
    kind: str = "AuthorizationError"
    status_code: int = status.HTTP_403_FORBIDDEN
    default_detail: str = "Not authorized"
    headers_: Optional[dict[str, str]] = None

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or self.default_detail,
            headers=self.headers_,
        )


class MissingCredential(AuthorizationError):
    kind = "MissingCredential"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Missing authorization token"
    headers_ = {"WWW-Authenticate": "Bearer"}


class InvalidCredential(AuthorizationError):
    kind = "InvalidCredential"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid or expired token"
    headers_ = {"WWW-Authenticate": "Bearer"}


class NoEmployeeAccount(AuthorizationError):
    kind = "NoEmployeeAccount"
    default_detail = "Employee account required"


class AccountDisabled(AuthorizationError):
    kind = "AccountDisabled"
    default_detail = "Account disabled"


class InsufficientPermission(AuthorizationError):
    kind = "InsufficientPermission"
    default_detail = "Not authorized"


class NotAdmin(AuthorizationError):
    kind = "NotAdmin"
    default_detail = "Admin role required"


class BackendUnavailable(AuthorizationError):
    kind = "BackendUnavailable"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Authorization backend unavailable"
