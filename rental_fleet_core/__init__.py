"""
Rental Fleet Core.

Tenant-scoped vehicle and location management: resolves the tenant of a
principal, validates location references, provisions headquarters locations
and keeps vehicle/location associations consistent.
"""

# Services are imported first; the processing modules they use depend on
# services.base_service being loaded.
from .services import LocationService, SessionManagedService, TenantService, VehicleService
from .processing import AssociationSynchronizer, HeadquartersProvisioner, LocationValidator
from .exceptions import (
    AssociationSyncFailedError,
    BaseError,
    DuplicateRegistrationError,
    ErrorCode,
    ForbiddenError,
    InvalidLocationReferenceError,
    NotFoundError,
    OperationTimeoutError,
    ServiceError,
    TenantUnresolvedError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "AssociationSynchronizer",
    "HeadquartersProvisioner",
    "LocationService",
    "LocationValidator",
    "SessionManagedService",
    "TenantService",
    "VehicleService",
    "AssociationSyncFailedError",
    "BaseError",
    "DuplicateRegistrationError",
    "ErrorCode",
    "ForbiddenError",
    "InvalidLocationReferenceError",
    "NotFoundError",
    "OperationTimeoutError",
    "ServiceError",
    "TenantUnresolvedError",
    "ValidationError",
]
