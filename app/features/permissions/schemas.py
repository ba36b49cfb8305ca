"""
Pydantic schemas for roles and permissions.

RoleRecord and PermissionRecord are the typed rows handed to the authorization
gate; the remaining models are request and response bodies.
"""
import enum
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, computed_field, field_validator


ADMIN_ROLE_NAME = "admin"


class RoleKind(str, enum.Enum):
    """Whether a role is the coarse admin bypass or an ordinary named role."""
    ADMIN = "admin"
    NAMED = "named"

    @classmethod
    def of(cls, role_name: str) -> "RoleKind":
        # Exact match only: "Admin" or "admin " are ordinary roles.
        return cls.ADMIN if role_name == ADMIN_ROLE_NAME else cls.NAMED


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionRecord(BaseModel):
    """Permission row as exposed by the API."""
    id: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleRecord(BaseModel):
    """Role held by an account."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def kind(self) -> RoleKind:
        return RoleKind.of(self.name)

    @property
    def is_admin(self) -> bool:
        return self.kind is RoleKind.ADMIN


class RoleCreate(BaseModel):
    """Schema for creating a new role."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")
    permission_keys: List[str] = Field(default_factory=list, description="Permission keys granted by the role")

    @field_validator('name')
    @classmethod
    def name_alphanumeric_underscore(cls, v: str) -> str:
        """Validate role name format."""
        if not v.replace('_', '').replace('-', '').isalnum():
            raise ValueError('Role name must contain only alphanumeric characters, underscores, and hyphens')
        return v


class RolePermissionsUpdate(BaseModel):
    """Full replacement set of permission keys for a role."""
    permission_keys: List[str] = Field(default_factory=list)


class RoleWithPermissions(RoleRecord):
    """Role together with the permission keys it grants."""
    permission_keys: List[str] = []


class RoleCatalogResponse(BaseModel):
    """All roles and the full permission catalog."""
    roles: List[RoleWithPermissions]
    permissions: List[PermissionRecord]


class RolePermissionsResponse(BaseModel):
    role_id: str
    permission_keys: List[str]
