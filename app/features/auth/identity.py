"""
Identity verification for bearer tokens.

Providers return an Identity for a good token and None for a bad or expired one.
Anything else going wrong (network, provider outage, misconfiguration) raises
IdentityProviderError so it is never mistaken for a rejected token.
"""
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import jwt
from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.services.account import Account
from starlette.concurrency import run_in_threadpool

from app.features.auth.errors import IdentityProviderError
from app.utils import get_logger


log = get_logger(__name__)

# Appwrite answers 401 for malformed, expired or revoked JWTs
_APPWRITE_INVALID_TOKEN_CODES = frozenset({401})


@dataclass(frozen=True)
class Identity:
    """Verified caller as reported by the identity provider."""
    subject_id: str
    claims: Mapping[str, Any] = field(default_factory=dict)

    @property
    def email(self) -> Optional[str]:
        return self.claims.get("email")


class IdentityProvider(Protocol):
    async def verify(self, token: str) -> Optional[Identity]:
        ...


class JWTIdentityProvider:
    """
    Verify provider-signed JWTs locally with a shared secret.

    Accepts `sub` or Appwrite's `userId` as the subject claim.
    """

    def __init__(
        self,
        secret: str,
        algorithms: Sequence[str] = ("HS256",),
        audience: Optional[str] = None,
    ):
        if not secret:
            raise IdentityProviderError("JWT secret is not configured")
        self._secret = secret
        self._algorithms = list(algorithms)
        self._audience = audience

    async def verify(self, token: str) -> Optional[Identity]:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=self._algorithms,
                audience=self._audience,
                options={"verify_aud": self._audience is not None},
            )
        except jwt.ExpiredSignatureError:
            log.debug("Rejected expired token")
            return None
        except jwt.InvalidTokenError as e:
            log.debug(f"Rejected invalid token: {e}")
            return None
        except jwt.PyJWTError as e:
            # Key or algorithm misconfiguration, not a caller mistake
            raise IdentityProviderError(f"JWT verification failed: {e}") from e

        subject = payload.get("sub") or payload.get("userId")
        if not subject:
            log.debug("Rejected token without subject claim")
            return None
        return Identity(subject_id=str(subject), claims=payload)


class AppwriteIdentityProvider:
    """
    Verify tokens by asking the Appwrite server who owns the JWT.

    A fresh client is built per call since the caller's JWT is client state.
    """

    def __init__(self, endpoint: Optional[str], project_id: Optional[str]):
        if not endpoint or not project_id:
            raise IdentityProviderError("Appwrite endpoint and project id must be configured")
        self._endpoint = endpoint
        self._project_id = project_id

    def _get_account(self, token: str) -> dict:
        client = Client()
        client.set_endpoint(self._endpoint)
        client.set_project(self._project_id)
        client.set_jwt(token)
        return Account(client).get()

    async def verify(self, token: str) -> Optional[Identity]:
        try:
            user = await run_in_threadpool(self._get_account, token)
        except AppwriteException as e:
            if e.code in _APPWRITE_INVALID_TOKEN_CODES:
                log.debug(f"Appwrite rejected token: {e.message}")
                return None
            raise IdentityProviderError(f"Appwrite account lookup failed (code={e.code}): {e.message}") from e

        subject = user.get("$id") if isinstance(user, dict) else None
        if not subject:
            raise IdentityProviderError("Appwrite returned an account without an id")
        return Identity(subject_id=str(subject), claims=user)
