"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.features.users.models import ViewScope


class UserPublic(BaseModel):
    """Row-level user information returned by listings."""
    id: str
    name: str
    email: EmailStr
    position: str | None = None
    employee_no: str | None = None
    company_id: str | None = None
    department_id: str | None = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class UserVisibilityUpdate(BaseModel):
    """Partial visibility update; omitted fields keep their stored value."""
    hidden: bool | None = Field(None, description="Hide the user from everyone but super admins")
    view_scope: ViewScope | None = Field(None, description="ALL, SELF_ONLY or DEPT_ONLY")


class UserVisibilityResponse(BaseModel):
    user_id: str
    hidden: bool
    view_scope: ViewScope
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserFieldsResponse(BaseModel):
    """Field values of one user after redaction."""
    user_id: str
    visible_field_keys: list[str]
    values: Dict[str, Any]
