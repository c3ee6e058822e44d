"""
Pydantic schemas for permission management.

Request and response models for permissions, roles, role assignment and audit logs.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionResponse(BaseModel):
    """Schema for permission response."""
    id: str
    name: str
    resource: str
    action: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleResponse(BaseModel):
    """Schema for role response."""
    id: str
    name: str
    description: Optional[str] = None
    is_system: bool

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissions(RoleResponse):
    """Schema for role with permissions."""
    permissions: List[PermissionResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Assignment Schemas
# ============================================================================

class SetUserRoles(BaseModel):
    """Replace a user's roles with the named roles."""
    role_names: List[str] = Field(..., description="Role names; unknown names are ignored")

    @field_validator('role_names')
    @classmethod
    def strip_names(cls, v: List[str]) -> List[str]:
        """Drop blanks and surrounding whitespace."""
        return [name.strip() for name in v if name and name.strip()]


class UserRolesResponse(BaseModel):
    user_id: str
    roles: List[str]


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Schema for checking if the caller has a permission."""
    resource: str = Field(..., min_length=1, description="Resource type")
    action: str = Field(..., min_length=1, description="Action")

    @field_validator('action')
    @classmethod
    def action_lowercase(cls, v: str) -> str:
        """Ensure action is lowercase."""
        return v.lower()


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    has_permission: bool
    reason: Optional[str] = None


class UserPermissionsResponse(BaseModel):
    """Roles and flattened permission names of a user."""
    user_id: str
    is_super_admin: bool
    roles: List[str] = []
    permissions: List[str] = []


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    company_id: Optional[str]
    details: Optional[Dict[str, Any]]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
