"""
Authorization gate for staff endpoints.

Every check runs the same pipeline and stops at the first failing stage:

    bearer token -> verified identity -> employee account -> roles -> permissions

Three entry points sit on top of one decision function (authorize):
- require_employee: an active employee account is enough
- require_permission: the account holds the permission key, or the admin role
- assert_admin: the account holds the admin role; the permission table is not consulted
"""
import asyncio
import enum
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, TypeVar

from pydantic import ValidationError
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.features.accounts.resolver import get_account_by_identity
from app.features.accounts.schemas import EmployeeAccountRecord
from app.features.auth.credentials import get_bearer_token
from app.features.auth.errors import (
    AccountDisabled,
    AuthorizationError,
    BackendUnavailable,
    IdentityProviderError,
    InsufficientPermission,
    InvalidCredential,
    MissingCredential,
    NoEmployeeAccount,
    NotAdmin,
)
from app.features.auth.identity import Identity, IdentityProvider
from app.features.permissions.queries import aggregate_permission_keys, list_account_roles
from app.features.permissions.schemas import RoleRecord
from app.utils import get_logger


log = get_logger(__name__)

T = TypeVar("T")

# Failures worth a second attempt: dropped connections, lock timeouts, pool exhaustion
_TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


class TrustLevel(enum.IntEnum):
    UNAUTHENTICATED = 0
    IDENTITY_VERIFIED = 1
    EMPLOYEE = 2
    PERMITTED = 3
    ADMIN = 4


class RequirementMode(str, enum.Enum):
    EMPLOYEE = "employee"
    PERMISSION = "permission"
    ADMIN = "admin"


@dataclass(frozen=True)
class Requirement:
    """What a request must prove: employment, a permission key, or the admin role."""
    mode: RequirementMode
    permission_key: Optional[str] = None

    @classmethod
    def employee(cls) -> "Requirement":
        return cls(RequirementMode.EMPLOYEE)

    @classmethod
    def permission(cls, key: str) -> "Requirement":
        if not key:
            raise ValueError("Permission key must not be empty")
        return cls(RequirementMode.PERMISSION, key)

    @classmethod
    def admin(cls) -> "Requirement":
        return cls(RequirementMode.ADMIN)


@dataclass
class AuthContext:
    """Everything a handler needs after a successful check."""
    identity: Identity
    account: EmployeeAccountRecord
    db: AsyncSession
    trust_level: TrustLevel
    roles: Tuple[RoleRecord, ...] = ()
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return any(role.is_admin for role in self.roles)


class AuthorizationGate:
    """
    Runs authorization checks against an identity provider and the data store.

    Each external call is bounded by `timeout` seconds. Data store reads are
    retried `read_retries` times on transient errors; anything still failing is
    reported as BackendUnavailable rather than a denial.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        *,
        timeout: float = config.AUTH_BACKEND_TIMEOUT_SECONDS,
        read_retries: int = config.AUTH_READ_RETRIES,
    ):
        self.identity_provider = identity_provider
        self.timeout = timeout
        self.read_retries = max(read_retries, 0)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def require_employee(self, headers: Mapping[str, Any], db: AsyncSession) -> AuthContext:
        return await self.authorize(headers, db, Requirement.employee())

    async def require_permission(self, headers: Mapping[str, Any], db: AsyncSession, key: str) -> AuthContext:
        return await self.authorize(headers, db, Requirement.permission(key))

    async def assert_admin(self, headers: Mapping[str, Any], db: AsyncSession) -> AuthContext:
        return await self.authorize(headers, db, Requirement.admin())

    async def authorize(
        self,
        headers: Mapping[str, Any],
        db: AsyncSession,
        requirement: Requirement,
    ) -> AuthContext:
        """
        Decide whether the request meets `requirement`.

        Returns:
            AuthContext for the caller

        Raises:
            AuthorizationError: the first failing stage's outcome
        """
        try:
            return await self._authorize(headers, db, requirement)
        except BackendUnavailable:
            raise
        except AuthorizationError as e:
            log.debug(f"Denied {requirement.mode.value} check: {e.kind}")
            raise

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _authorize(self, headers: Mapping[str, Any], db: AsyncSession, requirement: Requirement) -> AuthContext:
        token = get_bearer_token(headers)
        if token is None:
            raise MissingCredential()

        identity = await self._verify(token)
        if identity is None:
            raise InvalidCredential()

        account = await self._read(get_account_by_identity, db, identity.subject_id)
        if account is None:
            # An identity without an account cannot hold the admin role
            if requirement.mode is RequirementMode.ADMIN:
                raise NotAdmin()
            raise NoEmployeeAccount()
        if not account.is_active:
            raise AccountDisabled()

        if requirement.mode is RequirementMode.EMPLOYEE:
            return AuthContext(identity=identity, account=account, db=db, trust_level=TrustLevel.EMPLOYEE)

        roles = tuple(await self._read(list_account_roles, db, account.id))
        is_admin = any(role.is_admin for role in roles)

        if requirement.mode is RequirementMode.ADMIN:
            if not is_admin:
                raise NotAdmin()
            return AuthContext(
                identity=identity, account=account, db=db, trust_level=TrustLevel.ADMIN, roles=roles,
            )

        permissions = await self._read(aggregate_permission_keys, db, [role.id for role in roles])
        if is_admin:
            trust_level = TrustLevel.ADMIN
        elif requirement.permission_key in permissions:
            trust_level = TrustLevel.PERMITTED
        else:
            raise InsufficientPermission()

        return AuthContext(
            identity=identity,
            account=account,
            db=db,
            trust_level=trust_level,
            roles=roles,
            permissions=permissions,
        )

    async def _verify(self, token: str) -> Optional[Identity]:
        try:
            return await asyncio.wait_for(self.identity_provider.verify(token), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            log.error(f"Identity provider did not answer within {self.timeout}s")
            raise BackendUnavailable() from e
        except IdentityProviderError as e:
            log.error(f"Identity provider failure: {e}", exc_info=True)
            raise BackendUnavailable() from e

    async def _read(self, fn: Callable[..., Awaitable[T]], db: AsyncSession, *args: Any) -> T:
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(fn(db, *args), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                log.error(f"{fn.__name__} did not finish within {self.timeout}s")
                raise BackendUnavailable() from e
            except _TRANSIENT_DB_ERRORS as e:
                if attempt >= self.read_retries:
                    log.error(f"{fn.__name__} failed after {attempt + 1} attempts: {e}", exc_info=True)
                    raise BackendUnavailable() from e
                attempt += 1
                log.warning(f"{fn.__name__} failed, retrying ({attempt}/{self.read_retries}): {e}")
                await self._reset(db, e)
            except (SQLAlchemyError, ValidationError) as e:
                log.error(f"{fn.__name__} failed: {e}", exc_info=True)
                raise BackendUnavailable() from e

    async def _reset(self, db: AsyncSession, cause: Exception) -> None:
        try:
            await db.rollback()
        except SQLAlchemyError as e:
            log.error(f"Rollback before retry failed: {e}", exc_info=True)
            raise BackendUnavailable() from cause
