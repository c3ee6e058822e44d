"""
Pydantic schemas for the field catalog.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.features.fields.models import Classification


class FieldDefinitionUpsert(BaseModel):
    """Create or overwrite a field definition."""
    label: str = Field(..., min_length=1, max_length=255)
    classification: Classification
    self_editable: bool = False


class FieldDefinitionResponse(BaseModel):
    id: str
    key: str
    label: str
    classification: Classification
    self_editable: bool

    model_config = ConfigDict(from_attributes=True)


class FieldSetUpsert(BaseModel):
    description: Optional[str] = Field(None, max_length=1000)
    is_system: bool = False


class FieldSetAssign(BaseModel):
    """Ordered list of field keys to put into a set."""
    field_keys: List[str] = Field(..., min_length=1)

    @field_validator('field_keys')
    @classmethod
    def strip_keys(cls, v: List[str]) -> List[str]:
        return [key.strip() for key in v if key and key.strip()]


class FieldSetItemResponse(BaseModel):
    order: int
    field: FieldDefinitionResponse

    model_config = ConfigDict(from_attributes=True)


class FieldSetResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    is_system: bool
    items: List[FieldSetItemResponse] = []

    model_config = ConfigDict(from_attributes=True)
