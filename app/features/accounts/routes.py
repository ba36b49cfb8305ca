"""
Employee account routes.

- /moderator/me: the caller's own account, roles and permissions
- /admin/accounts/*: role assignment and enable/disable (employees.manage)
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.features.accounts.models import AccountStatus
from app.features.accounts.resolver import get_account_by_identity, set_account_status
from app.features.accounts.schemas import (
    AccountResponse,
    AccountRolesResponse,
    AccountRolesUpdate,
    AccountStatusUpdate,
    ProfileResponse,
)
from app.features.auth.dependencies import require_employee, require_permission
from app.features.auth.gate import AuthContext
from app.features.permissions.queries import (
    aggregate_permission_keys,
    list_account_roles,
    replace_account_roles,
)
from app.utils import get_logger


log = get_logger(__name__)

router = APIRouter()
moderator_router = APIRouter()

MANAGE_EMPLOYEES = "employees.manage"


@moderator_router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    auth: Annotated[AuthContext, Depends(require_employee)]
):
    """Get the caller's employee account with its roles and effective permissions."""
    try:
        roles = await list_account_roles(auth.db, auth.account.id)
        permissions = await aggregate_permission_keys(auth.db, [role.id for role in roles])
    except SQLAlchemyError:
        log.error(f"Failed to load profile for account {auth.account.id}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load profile",
        )

    return ProfileResponse(account=auth.account, roles=roles, permissions=sorted(permissions))


@router.patch("/{account_id}/roles", response_model=AccountRolesResponse)
async def update_account_roles(
    account_id: str,
    update: AccountRolesUpdate,
    auth: Annotated[AuthContext, Depends(require_permission(MANAGE_EMPLOYEES))]
):
    """Replace all roles of an account with the given set."""
    db = auth.db
    account = await get_account_by_identity(db, account_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    try:
        await replace_account_roles(db, account_id, update.role_ids)
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unknown role id"
        )

    log.info(f"Account {auth.account.id} replaced roles of account {account_id}")
    roles = await list_account_roles(db, account_id)
    return AccountRolesResponse(account_id=account_id, roles=roles)


@router.patch("/{account_id}/disable", response_model=AccountResponse)
async def update_account_status(
    account_id: str,
    update: AccountStatusUpdate,
    auth: Annotated[AuthContext, Depends(require_permission(MANAGE_EMPLOYEES))]
):
    """Disable or re-enable an employee account."""
    new_status = AccountStatus.DISABLED if update.disabled else AccountStatus.ACTIVE
    account = await set_account_status(auth.db, account_id, new_status)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    log.info(f"Account {auth.account.id} set account {account_id} to {new_status.value}")
    return AccountResponse(account=account)
