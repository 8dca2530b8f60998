"""
Base classes for schemas read back from the store.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StoredRecord(BaseModel):
    """Fields every persisted row carries; built from ORM objects."""

    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TenantOwnedRecord(StoredRecord):
    """A stored row that belongs to exactly one tenant."""

    tenant_id: str = Field(..., min_length=1, max_length=100)
