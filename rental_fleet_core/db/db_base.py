"""
Column types and mixins shared by the fleet models.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy import JSON as GenericJSON
from sqlalchemy.dialects.postgresql import JSONB

# Text-backed JSON on SQLite, JSONB on Postgres
JSON = GenericJSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)


class UUIDMixin:
    """String UUID primary key, generated on insert."""

    id = Column(String(36), primary_key=True, default=new_id)
