"""Service layer for business logic."""

from .base_service import SessionManagedService
from .tenant_service import TenantService
from .location_service import LocationService
from .vehicle_service import VehicleService

__all__ = [
    "SessionManagedService",
    "TenantService",
    "LocationService",
    "VehicleService",
]
