"""
Enums used across the rental_fleet_core package.

This module contains enum definitions that are used by multiple modules
to avoid circular import issues.
"""

import enum


class LocationRole(str, enum.Enum):
    """Role a location plays for a vehicle."""

    PICKUP = "pickup"
    DROPOFF = "dropoff"


class VehicleStatus(str, enum.Enum):
    """Lifecycle status of a vehicle."""

    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class Transmission(str, enum.Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class FuelType(str, enum.Enum):
    PETROL = "petrol"
    DIESEL = "diesel"
    ELECTRIC = "electric"
    HYBRID = "hybrid"
