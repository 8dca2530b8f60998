"""Pydantic schemas exchanged at the service boundary."""

from .location_schema import (
    ExistingLocationRef,
    LocationCreate,
    LocationRead,
    LocationRef,
    LocationUpdate,
    NewLocationRef,
    existing_ids,
    to_location_refs,
)
from .tenant_schema import TenantCreate, TenantRead
from .vehicle_schema import AssociationSet, VehicleAttributes, VehicleRead

__all__ = [
    "AssociationSet",
    "ExistingLocationRef",
    "LocationCreate",
    "LocationRead",
    "LocationRef",
    "LocationUpdate",
    "NewLocationRef",
    "TenantCreate",
    "TenantRead",
    "VehicleAttributes",
    "VehicleRead",
    "existing_ids",
    "to_location_refs",
]
