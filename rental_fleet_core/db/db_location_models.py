"""
Location model.

A tenant holds at most one headquarters row; the partial unique index
enforces it in the store on both SQLite and PostgreSQL.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, text

from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class Location(Base, UUIDMixin, TimestampMixin):
    """A physical place owned by one tenant."""

    __tablename__ = "location"

    tenant_id = Column(String(36), ForeignKey("tenant.id"), nullable=False)
    name = Column(String(200), nullable=False)
    address_line1 = Column(String(200), nullable=True)
    address_line2 = Column(String(200), nullable=True)
    city = Column(String(100), nullable=True)
    region = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)

    is_pickup = Column(Boolean, nullable=False, default=True)
    is_dropoff = Column(Boolean, nullable=False, default=True)
    is_headquarters = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_location_tenant", "tenant_id"),
        Index("ix_location_tenant_active", "tenant_id", "is_active"),
        Index(
            "uq_location_tenant_headquarters",
            "tenant_id",
            unique=True,
            sqlite_where=text("is_headquarters = 1"),
            postgresql_where=text("is_headquarters"),
        ),
    )
