"""
Vehicle service: creates and updates vehicles together with their
pickup/dropoff locations as one unit of work.

The tenant is always resolved from the principal; a tenant value sent by a
client is never used.
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import exists, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .base_service import SessionManagedService
from .tenant_service import TenantService
from ..context.operation_context import operation
from ..context.tenant_context import tenant_context
from ..db.db_vehicle_models import Vehicle, VehicleLocation
from ..enums import LocationRole, VehicleStatus
from ..exceptions import (
    DuplicateRegistrationError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from ..processing.association_synchronizer import AssociationSynchronizer
from ..processing.location_validator import LocationValidator
from ..schemas.location_schema import LocationRef
from ..schemas.vehicle_schema import AssociationSet, VehicleAttributes, VehicleRead
from ..utils.logger import get_logger
from ..utils.timeout import store_timeout, timeout_for

CandidateIds = Optional[Iterable[Union[str, LocationRef, None]]]

_REGISTRATION_CONSTRAINT_MARKERS = ("uq_vehicle_tenant_registration", "registration_number")


def _is_registration_conflict(error: IntegrityError) -> bool:
    text = str(error.orig if error.orig is not None else error).lower()
    return any(marker in text for marker in _REGISTRATION_CONSTRAINT_MARKERS)


class VehicleService(SessionManagedService):
    """
    Service for a tenant's vehicles with direct SQLAlchemy access.

    Resolver, validator and synchronizer share this service's session so that
    scalar changes and association changes commit or roll back together.
    """

    def __init__(self, session: Optional[Session] = None):
        super().__init__(logger=get_logger(), session=session)
        self.tenants = TenantService(session=self.session)
        self.validator = LocationValidator(self.session)
        self.synchronizer = AssociationSynchronizer(self.session, validator=self.validator)

    def _coerce_attributes(self, attributes: Union[VehicleAttributes, Dict[str, Any]]) -> VehicleAttributes:
        if isinstance(attributes, VehicleAttributes):
            return attributes
        try:
            return VehicleAttributes.model_validate(attributes)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid vehicle data: {e.error_count()} field(s) failed validation",
                validation_errors=e.errors(include_url=False, include_context=False),
            ) from e

    def _get_owned(self, tenant_id: str, vehicle_id: str, action: str) -> Vehicle:
        with store_timeout("get_vehicle", timeout_for("query")):
            vehicle = self.session.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
        if vehicle is None:
            raise NotFoundError("Vehicle", vehicle_id)
        if vehicle.tenant_id != tenant_id:
            raise ForbiddenError("Vehicle", vehicle_id, action=action)
        return vehicle

    def _check_registration(
        self, tenant_id: str, registration_number: str, exclude_id: Optional[str] = None
    ) -> None:
        conditions = [
            Vehicle.tenant_id == tenant_id,
            func.upper(func.trim(Vehicle.registration_number)) == registration_number,
        ]
        if exclude_id:
            conditions.append(Vehicle.id != exclude_id)

        with store_timeout("check_registration", timeout_for("query")):
            taken = self.session.query(exists().where(*conditions)).scalar()
        if taken:
            raise DuplicateRegistrationError(registration_number)

    @operation()
    def save_vehicle(
        self,
        principal_id: str,
        vehicle_id: Optional[str],
        attributes: Union[VehicleAttributes, Dict[str, Any]],
        pickup_ids: CandidateIds = None,
        dropoff_ids: CandidateIds = None,
    ) -> VehicleRead:
        """
        Create (``vehicle_id`` None) or update a vehicle and replace its locations.

        Every check runs before anything is written. Scalars and associations
        are committed together or not at all.

        Args:
            principal_id: Authenticated principal
            vehicle_id: Vehicle to update, or None to create one
            attributes: Scalar attributes
            pickup_ids: Pickup location ids (blanks and new-location markers ignored)
            dropoff_ids: Dropoff location ids (blanks and new-location markers ignored)

        Returns:
            The saved vehicle with its verified pickup and dropoff ids

        Raises:
            TenantUnresolvedError, NotFoundError, ForbiddenError, ValidationError,
            DuplicateRegistrationError, InvalidLocationReferenceError,
            AssociationSyncFailedError, OperationTimeoutError, ServiceError
        """
        attrs = self._coerce_attributes(attributes)
        tenant_id = self.tenants.resolve_tenant(principal_id)

        with tenant_context(tenant_id):
            try:
                vehicle = (
                    self._get_owned(tenant_id, vehicle_id, action="update") if vehicle_id else None
                )

                self._check_registration(
                    tenant_id, attrs.registration_number, exclude_id=vehicle_id
                )

                pickup = self.validator.validate(tenant_id, pickup_ids, LocationRole.PICKUP)
                dropoff = self.validator.validate(tenant_id, dropoff_ids, LocationRole.DROPOFF)
            except Exception as e:
                self._handle_service_exception("save_vehicle", e, vehicle_id)

            columns = attrs.to_columns()
            budget = timeout_for("update" if vehicle is not None else "insert")
            try:
                with store_timeout("save_vehicle", budget) as deadline:
                    with self.transaction(deadline):
                        if vehicle is None:
                            vehicle = Vehicle(
                                tenant_id=tenant_id, created_by=principal_id.strip(), **columns
                            )
                            self.session.add(vehicle)
                        else:
                            for column, value in columns.items():
                                setattr(vehicle, column, value)
                        self.session.flush()

                        associations = self.synchronizer.apply_validated(
                            vehicle.id, pickup, dropoff
                        )
            except IntegrityError as e:
                if _is_registration_conflict(e):
                    raise DuplicateRegistrationError(attrs.registration_number, cause=e) from e
                self._handle_service_exception("save_vehicle", e, vehicle_id)
            except Exception as e:
                self._handle_service_exception("save_vehicle", e, vehicle_id)

            self.logger.info(
                f"{'Updated' if vehicle_id else 'Created'} vehicle: id={vehicle.id}",
                extra={
                    "registration_number": attrs.registration_number,
                    "pickup_count": len(associations.pickup_location_ids),
                    "dropoff_count": len(associations.dropoff_location_ids),
                },
            )
            return VehicleRead.from_row(vehicle, associations)

    @operation()
    def get_vehicle(self, principal_id: str, vehicle_id: str) -> VehicleRead:
        """
        Get one of the principal's tenant's vehicles.

        Raises:
            NotFoundError / ForbiddenError: If missing or owned by another tenant
        """
        tenant_id = self.tenants.resolve_tenant(principal_id)
        try:
            vehicle = self._get_owned(tenant_id, vehicle_id, action="view")
            associations = self.synchronizer.get_associations(vehicle_id)
        except Exception as e:
            self._handle_service_exception("get_vehicle", e, vehicle_id)
        return VehicleRead.from_row(vehicle, associations)

    @operation()
    def list_vehicles(self, principal_id: str, status: Optional[str] = None) -> List[VehicleRead]:
        """
        The tenant's vehicles, newest first, optionally filtered by status.
        """
        tenant_id = self.tenants.resolve_tenant(principal_id)

        if status is not None:
            try:
                status = VehicleStatus(status.strip().lower()).value
            except ValueError as e:
                raise ValidationError(
                    f"Unknown vehicle status: {status}",
                    field="status",
                    error_code=ErrorCode.INVALID_FORMAT,
                    cause=e,
                ) from e

        try:
            with store_timeout("list_vehicles", timeout_for("query")):
                query = self.session.query(Vehicle).filter(Vehicle.tenant_id == tenant_id)
                if status is not None:
                    query = query.filter(Vehicle.status == status)
                vehicles = query.order_by(Vehicle.created_at.desc(), Vehicle.id).all()

                pairs: Dict[str, list] = defaultdict(list)
                if vehicles:
                    rows = (
                        self.session.query(
                            VehicleLocation.vehicle_id,
                            VehicleLocation.location_id,
                            VehicleLocation.role,
                        )
                        .filter(VehicleLocation.vehicle_id.in_([v.id for v in vehicles]))
                        .all()
                    )
                    for row in rows:
                        pairs[row.vehicle_id].append((row.location_id, row.role))
        except Exception as e:
            self._handle_service_exception("list_vehicles", e, tenant_id)

        return [
            VehicleRead.from_row(vehicle, AssociationSet.from_pairs(pairs[vehicle.id]))
            for vehicle in vehicles
        ]

    @operation()
    def delete_vehicle(self, principal_id: str, vehicle_id: str) -> None:
        """
        Delete a vehicle and its location associations.

        Raises:
            NotFoundError / ForbiddenError: If missing or owned by another tenant
        """
        tenant_id = self.tenants.resolve_tenant(principal_id)

        try:
            vehicle = self._get_owned(tenant_id, vehicle_id, action="delete")
            with store_timeout("delete_vehicle", timeout_for("delete")) as deadline:
                with self.transaction(deadline):
                    self.session.query(VehicleLocation).filter(
                        VehicleLocation.vehicle_id == vehicle_id
                    ).delete(synchronize_session="fetch")
                    self.session.delete(vehicle)
        except Exception as e:
            self._handle_service_exception("delete_vehicle", e, vehicle_id)

        self.logger.info(
            f"Deleted vehicle: id={vehicle_id}", extra={"tenant_id": tenant_id}
        )
