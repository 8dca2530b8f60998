"""Location validation, headquarters provisioning and association synchronization."""

from .association_synchronizer import AssociationSynchronizer
from .headquarters_provisioner import HeadquartersProvisioner
from .location_validator import LocationValidator, normalize_location_id, normalize_location_ids

__all__ = [
    "AssociationSynchronizer",
    "HeadquartersProvisioner",
    "LocationValidator",
    "normalize_location_id",
    "normalize_location_ids",
]
