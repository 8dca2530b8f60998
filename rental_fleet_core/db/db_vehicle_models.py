"""
Vehicle and vehicle/location association models.
"""

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class Vehicle(Base, UUIDMixin, TimestampMixin):
    """A rentable vehicle owned by one tenant."""

    __tablename__ = "vehicle"

    tenant_id = Column(String(36), ForeignKey("tenant.id"), nullable=False)
    created_by = Column(String(100), nullable=True)

    # Stored trimmed and upper-cased
    registration_number = Column(String(20), nullable=False)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    color = Column(String(50), nullable=True)
    transmission = Column(String(20), nullable=False)
    fuel_type = Column(String(20), nullable=False)
    seats = Column(Integer, nullable=False)
    daily_rate = Column(Numeric(10, 2), nullable=False)
    deposit_required = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    features = Column(JSON, nullable=True, default=list)

    __table_args__ = (
        Index("ix_vehicle_tenant", "tenant_id"),
        Index("ix_vehicle_created_by", "created_by"),
        UniqueConstraint("tenant_id", "registration_number", name="uq_vehicle_tenant_registration"),
    )


class VehicleLocation(Base, UUIDMixin, TimestampMixin):
    """Permits a location to serve a vehicle in one role (pickup or dropoff)."""

    __tablename__ = "vehicle_location"

    vehicle_id = Column(String(36), ForeignKey("vehicle.id", ondelete="CASCADE"), nullable=False)
    location_id = Column(String(36), ForeignKey("location.id"), nullable=False)
    role = Column(String(20), nullable=False)

    __table_args__ = (
        Index("ix_vehicle_location_vehicle", "vehicle_id"),
        Index("ix_vehicle_location_location", "location_id"),
        UniqueConstraint("vehicle_id", "location_id", "role", name="uq_vehicle_location_role"),
    )
