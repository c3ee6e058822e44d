"""
Pydantic schemas for temporary access grants.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class GrantCreate(BaseModel):
    """Schema for creating a temporary access grant."""
    grantee_id: str = Field(..., description="User receiving the exception")
    resource: str = Field(..., min_length=1, max_length=100, description="Resource, e.g. 'user'")
    field_key: str = Field(..., min_length=1, max_length=100, description="Field key, e.g. 'salary'")
    action: str = Field("read", min_length=1, max_length=50, description="read, download or export")
    start_at: datetime
    end_at: datetime
    allow_cross_boundary: bool = Field(False, description="Also lift the company boundary for this resource")
    scope_department_id: Optional[str] = Field(None, description="Only targets in this department subtree")

    @field_validator("action")
    @classmethod
    def action_lowercase(cls, v: str) -> str:
        """Ensure action is lowercase."""
        return v.lower()


class GrantResponse(BaseModel):
    id: str
    grantee_id: str
    resource: str
    field_key: str
    action: str
    start_at: datetime
    end_at: datetime
    allow_cross_boundary: bool
    scope_department_id: Optional[str] = None
    created_by_id: Optional[str] = None
    revoked_at: Optional[datetime] = None
    revoked_by_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
