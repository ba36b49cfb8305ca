"""
Role and permission resolution for employee accounts.

Reads:
- list_account_roles: roles held by an account (account_roles join)
- aggregate_permission_keys: union of permission keys over a set of roles

Writes (each a single transaction, so readers see the old or the new set):
- replace_account_roles
- replace_role_permissions
"""
from collections.abc import Iterable
from typing import List
from sqlalchemy import select, delete, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.models import (
    Permission,
    Role,
    account_roles,
    role_permissions,
)
from app.features.permissions.schemas import RoleRecord
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Reads
# ============================================================================

async def list_account_roles(db: AsyncSession, account_id: str) -> List[RoleRecord]:
    """
    Get the roles assigned to an account, ordered by name.

    An account with no role rows yields an empty list.
    """
    # Columns only: loading Role entities would pull their selectin permissions too
    stmt = (
        select(Role.id, Role.name, Role.description)
        .join(account_roles, account_roles.c.role_id == Role.id)
        .where(account_roles.c.account_id == account_id)
        .order_by(Role.name)
    )
    result = await db.execute(stmt)
    return [RoleRecord(**row._mapping) for row in result.all()]


async def aggregate_permission_keys(db: AsyncSession, role_ids: Iterable[str]) -> frozenset[str]:
    """
    Get the deduplicated union of permission keys granted by the given roles.

    Role order does not matter and an empty role set never reaches the database.
    """
    role_ids = set(role_ids)
    if not role_ids:
        return frozenset()

    stmt = (
        select(Permission.key)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .where(role_permissions.c.role_id.in_(role_ids))
        .distinct()
    )
    result = await db.execute(stmt)
    return frozenset(result.scalars().all())


# ============================================================================
# Atomic replace operations
# ============================================================================

async def replace_account_roles(db: AsyncSession, account_id: str, role_ids: Iterable[str]) -> List[str]:
    """
    Replace every role link of an account with the given set.

    The delete and insert commit together. On any failure (for example an
    unknown role id violating the foreign key) the transaction is rolled back,
    the previous assignment stays in place, and the error propagates.

    Returns:
        The role ids now assigned, in request order without duplicates.
    """
    unique_ids = list(dict.fromkeys(role_ids))
    try:
        await db.execute(delete(account_roles).where(account_roles.c.account_id == account_id))
        if unique_ids:
            await db.execute(
                insert(account_roles),
                [{"account_id": account_id, "role_id": role_id} for role_id in unique_ids],
            )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    log.info(f"Replaced roles of account {account_id}: {unique_ids}")
    return unique_ids


async def replace_role_permissions(db: AsyncSession, role_id: str, permission_keys: Iterable[str]) -> List[str]:
    """
    Replace every permission link of a role with the permissions matching the given keys.

    Keys without a catalog entry are skipped. Resolution, delete and insert run in
    one transaction and are rolled back together on failure.

    Returns:
        The permission keys now granted by the role, sorted.
    """
    requested = set(permission_keys)
    try:
        resolved: dict[str, str] = {}
        if requested:
            result = await db.execute(select(Permission.id, Permission.key).where(Permission.key.in_(requested)))
            resolved = {key: perm_id for perm_id, key in result.all()}

        unknown = requested - resolved.keys()
        if unknown:
            log.warning(f"Ignoring unknown permission keys for role {role_id}: {sorted(unknown)}")

        await db.execute(delete(role_permissions).where(role_permissions.c.role_id == role_id))
        if resolved:
            await db.execute(
                insert(role_permissions),
                [{"role_id": role_id, "permission_id": perm_id} for perm_id in resolved.values()],
            )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    granted = sorted(resolved)
    log.info(f"Replaced permissions of role {role_id}: {granted}")
    return granted
