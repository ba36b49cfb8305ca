"""
Role management API routes.

Provides the role catalog and replacement of the permission keys a role grants.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.features.auth.dependencies import require_admin, require_permission
from app.features.auth.gate import AuthContext
from app.features.permissions.models import Permission, Role
from app.features.permissions.queries import replace_role_permissions
from app.features.permissions.schemas import (
    PermissionRecord,
    RoleCatalogResponse,
    RoleCreate,
    RolePermissionsResponse,
    RolePermissionsUpdate,
    RoleWithPermissions,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

MANAGE_SETTINGS = "settings.manage"


@router.get("", response_model=RoleCatalogResponse)
async def list_roles(
    auth: Annotated[AuthContext, Depends(require_admin)]
):
    """List all roles with their permission keys, plus the permission catalog (admin only)."""
    db = auth.db
    roles_result = await db.execute(
        select(Role).order_by(Role.name).execution_options(populate_existing=True)
    )
    permissions_result = await db.execute(select(Permission).order_by(Permission.key))

    roles = [
        RoleWithPermissions(
            id=role.id,
            name=role.name,
            description=role.description,
            permission_keys=sorted(perm.key for perm in role.permissions),
        )
        for role in roles_result.scalars().all()
    ]
    permissions = [PermissionRecord.model_validate(p) for p in permissions_result.scalars().all()]
    return RoleCatalogResponse(roles=roles, permissions=permissions)


@router.post("", response_model=RoleWithPermissions, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    auth: Annotated[AuthContext, Depends(require_permission(MANAGE_SETTINGS))]
):
    """Create a role, optionally granting permission keys in the same transaction."""
    db = auth.db
    db_role = Role(name=role.name, description=role.description)
    db.add(db_role)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )

    granted = await replace_role_permissions(db, db_role.id, role.permission_keys)
    log.info(f"Account {auth.account.id} created role {db_role.name!r} with {len(granted)} permissions")

    return RoleWithPermissions(
        id=db_role.id,
        name=db_role.name,
        description=db_role.description,
        permission_keys=granted,
    )


@router.patch("/{role_id}/permissions", response_model=RolePermissionsResponse)
async def update_role_permissions(
    role_id: str,
    update: RolePermissionsUpdate,
    auth: Annotated[AuthContext, Depends(require_permission(MANAGE_SETTINGS))]
):
    """Replace all permissions of a role. Keys missing from the catalog are ignored."""
    db = auth.db
    result = await db.execute(select(Role.id).where(Role.id == role_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Role not found")

    granted = await replace_role_permissions(db, role_id, update.permission_keys)
    log.info(f"Account {auth.account.id} replaced permissions of role {role_id}")
    return RolePermissionsResponse(role_id=role_id, permission_keys=granted)
