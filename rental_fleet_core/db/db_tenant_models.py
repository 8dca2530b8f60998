"""
Tenant model.

Just the data structure - no business logic or class methods.
"""

from sqlalchemy import Boolean, Column, Index, String

from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class Tenant(Base, UUIDMixin, TimestampMixin):
    """A rental company. Exactly one owner principal per tenant."""

    __tablename__ = "tenant"

    name = Column(String(200), nullable=False)
    owner_id = Column(String(100), nullable=False, unique=True)
    contact_email = Column(String(200), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("ix_tenant_owner", "owner_id"),)
