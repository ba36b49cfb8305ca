"""
Pydantic schemas for employee accounts.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from app.features.accounts.models import AccountStatus
from app.features.permissions.schemas import RoleRecord


class EmployeeAccountRecord(BaseModel):
    """
    Employee account row validated at the data-layer boundary.

    A row with a missing id or an unknown status fails validation instead of
    reaching the authorization gate.
    """
    id: str = Field(..., min_length=1)
    employee_id: str = Field(..., min_length=1)
    email: str
    status: AccountStatus
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_active(self) -> bool:
        return self.status is AccountStatus.ACTIVE


class AccountRolesUpdate(BaseModel):
    """Full replacement set of role ids for an account."""
    role_ids: List[str] = Field(default_factory=list)


class AccountStatusUpdate(BaseModel):
    disabled: bool


class AccountResponse(BaseModel):
    account: EmployeeAccountRecord


class AccountRolesResponse(BaseModel):
    account_id: str
    roles: List[RoleRecord]


class ProfileResponse(BaseModel):
    """The caller's account with its roles and effective permission keys."""
    account: EmployeeAccountRecord
    roles: List[RoleRecord]
    permissions: List[str]
