"""
Pydantic schemas for tenants (rental companies).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import ErrorCode, ValidationError
from .mixins import StoredRecord


class TenantCreate(BaseModel):
    """
    Schema for creating a new tenant.
    """

    name: str = Field(min_length=1, max_length=200)
    owner_id: str = Field(min_length=1, max_length=100)
    contact_email: Optional[str] = Field(default=None, max_length=200)
    is_active: bool = Field(default=True)

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    @field_validator("name", "owner_id")
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValidationError(
                "Value must not be blank",
                error_code=ErrorCode.MISSING_REQUIRED,
                value=v,
            )
        return v

    @field_validator("contact_email")
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        """
        Basic email validation.
        """
        if v and "@" not in v:
            raise ValidationError(
                "Invalid email address",
                error_code=ErrorCode.INVALID_FORMAT,
                field="contact_email",
                value=v,
            )
        return v


class TenantRead(StoredRecord):
    """
    Schema for reading tenant data.
    """

    name: str
    owner_id: str
    contact_email: Optional[str] = None
    is_active: bool = True
