"""
SQLAlchemy models for the rental fleet core.

This module provides a common entry point for all models.
"""

# Import base definitions
from .db_base import JSON, TimestampMixin, UUIDMixin, utc_now

# Import configuration
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_db_manager,
    get_development_config,
    get_production_config,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_location_models import Location
from .db_tenant_models import Tenant
from .db_vehicle_models import Vehicle, VehicleLocation

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "get_development_config",
    "get_production_config",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "Location",
    "Tenant",
    "Vehicle",
    "VehicleLocation",
]
