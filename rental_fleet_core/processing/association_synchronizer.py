"""
Replaces a vehicle's pickup/dropoff location associations.

The replacement deletes every association row of the vehicle and inserts the
requested ones, then reads them back inside the same transaction. When the
read-back differs from what was written, the whole unit of work is rolled
back and AssociationSyncFailedError is raised.
"""

from typing import Iterable, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_vehicle_models import Vehicle, VehicleLocation
from ..enums import LocationRole
from ..exceptions import AssociationSyncFailedError, ForbiddenError, NotFoundError
from ..schemas.location_schema import LocationRef
from ..schemas.vehicle_schema import AssociationSet
from ..services.base_service import SessionManagedService
from ..utils.logger import get_logger
from ..utils.timeout import store_timeout, timeout_for
from .location_validator import LocationValidator

CandidateIds = Optional[Iterable[Union[str, LocationRef, None]]]


class AssociationSynchronizer(SessionManagedService):
    """
    All-or-nothing replacement of vehicle/location associations.
    """

    def __init__(self, session: Session, validator: Optional[LocationValidator] = None):
        super().__init__(logger=get_logger(), session=session)
        self.validator = validator or LocationValidator(session)

    def _fetch_pairs(self, vehicle_id: str) -> List[Tuple[str, str]]:
        rows = (
            self.session.query(VehicleLocation.location_id, VehicleLocation.role)
            .filter(VehicleLocation.vehicle_id == vehicle_id)
            .all()
        )
        return [(row.location_id, row.role) for row in rows]

    def get_associations(self, vehicle_id: str) -> AssociationSet:
        """Current pickup and dropoff ids of a vehicle."""
        try:
            with store_timeout("get_associations", timeout_for("query")):
                return AssociationSet.from_pairs(self._fetch_pairs(vehicle_id))
        except Exception as e:
            self._handle_service_exception("get_associations", e, vehicle_id)

    def apply_validated(
        self, vehicle_id: str, pickup_ids: List[str], dropoff_ids: List[str]
    ) -> AssociationSet:
        """
        Delete, insert and verify without committing.

        The ids must already have passed LocationValidator for the vehicle's
        tenant. The caller owns the transaction.

        Raises:
            AssociationSyncFailedError: If the rows read back differ from the ids written
        """
        expected = AssociationSet(pickup_location_ids=pickup_ids, dropoff_location_ids=dropoff_ids)

        removed = (
            self.session.query(VehicleLocation)
            .filter(VehicleLocation.vehicle_id == vehicle_id)
            .delete(synchronize_session="fetch")
        )

        rows = [
            VehicleLocation(vehicle_id=vehicle_id, location_id=location_id, role=role.value)
            for role, ids in ((LocationRole.PICKUP, pickup_ids), (LocationRole.DROPOFF, dropoff_ids))
            for location_id in ids
        ]
        self.session.add_all(rows)
        self.session.flush()

        actual = AssociationSet.from_pairs(self._fetch_pairs(vehicle_id))
        if not expected.same_sets(actual):
            raise AssociationSyncFailedError(
                vehicle_id, expected=expected.as_role_map(), actual=actual.as_role_map()
            )

        self.logger.debug(
            "Vehicle associations replaced",
            extra={
                "vehicle_id": vehicle_id,
                "removed": removed,
                "pickup_count": len(actual.pickup_location_ids),
                "dropoff_count": len(actual.dropoff_location_ids),
            },
        )
        return actual

    @operation()
    def replace_associations(
        self,
        vehicle_id: str,
        tenant_id: str,
        pickup_ids: CandidateIds,
        dropoff_ids: CandidateIds,
    ) -> AssociationSet:
        """
        Make the vehicle's associations exactly the given pickup and dropoff sets.

        Both lists are validated against ``tenant_id`` before anything is
        written. Empty lists are valid and clear the role.

        Returns:
            The verified association sets

        Raises:
            InvalidLocationReferenceError: Before any write, for any bad id
            NotFoundError / ForbiddenError: If the vehicle is missing or foreign
            AssociationSyncFailedError: If verification failed (rolled back)
            OperationTimeoutError: If the store timed out (rolled back)
            ServiceError: For other store failures (rolled back)
        """
        pickup = self.validator.validate(tenant_id, pickup_ids, LocationRole.PICKUP)
        dropoff = self.validator.validate(tenant_id, dropoff_ids, LocationRole.DROPOFF)

        try:
            with store_timeout("replace_associations", timeout_for("update")) as deadline:
                with self.transaction(deadline):
                    owner = (
                        self.session.query(Vehicle.tenant_id)
                        .filter(Vehicle.id == vehicle_id)
                        .scalar()
                    )
                    if owner is None:
                        raise NotFoundError("Vehicle", vehicle_id)
                    if owner != tenant_id:
                        raise ForbiddenError("Vehicle", vehicle_id, action="update")

                    result = self.apply_validated(vehicle_id, pickup, dropoff)
        except Exception as e:
            self._handle_service_exception("replace_associations", e, vehicle_id)

        self.logger.info(
            "Vehicle associations saved",
            extra={
                "vehicle_id": vehicle_id,
                "pickup_location_ids": result.pickup_location_ids,
                "dropoff_location_ids": result.dropoff_location_ids,
            },
        )
        return result
