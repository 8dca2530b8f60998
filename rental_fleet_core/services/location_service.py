"""
Location service: lists and maintains a tenant's locations.

Listing always provisions the tenant's headquarters first, so a fresh tenant
never sees an empty location list.
"""

from typing import List, Optional

from sqlalchemy import case, exists
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .base_service import SessionManagedService
from ..config import get_config
from ..context.operation_context import operation
from ..db.db_location_models import Location
from ..db.db_vehicle_models import VehicleLocation
from ..exceptions import ErrorCode, NotFoundError, ServiceError, ValidationError
from ..processing.headquarters_provisioner import HeadquartersProvisioner
from ..schemas.location_schema import LocationCreate, LocationRead, LocationUpdate
from ..utils.logger import get_logger
from ..utils.timeout import store_timeout, timeout_for

HEADQUARTERS_EXISTS_MESSAGE = "A headquarters location already exists for this company"


class LocationService(SessionManagedService):
    """
    Service for a tenant's locations with direct SQLAlchemy access.
    """

    def __init__(self, session: Optional[Session] = None):
        super().__init__(logger=get_logger(), session=session)
        self.provisioner = HeadquartersProvisioner(self.session)

    def _get_owned(self, tenant_id: str, location_id: str) -> Location:
        with store_timeout("get_location", timeout_for("query")):
            location = (
                self.session.query(Location)
                .filter(Location.id == location_id, Location.tenant_id == tenant_id)
                .first()
            )
        if location is None:
            raise NotFoundError("Location", location_id)
        return location

    def _headquarters_conflict(self, cause: Optional[Exception] = None) -> ServiceError:
        return ServiceError(
            HEADQUARTERS_EXISTS_MESSAGE,
            error_code=ErrorCode.DUPLICATE,
            operation="create_location",
            cause=cause,
            status_code=409,
        )

    @operation()
    def list_locations(self, tenant_id: str) -> List[LocationRead]:
        """
        Active locations of the tenant, headquarters first, then by name.

        The headquarters is provisioned first when missing; a provisioning
        failure does not fail the listing. On a session handed in by the
        caller the new headquarters is left for the caller to commit.
        """
        if self.provisioner.ensure_headquarters(tenant_id) and self._owns_session:
            try:
                self.commit()
            except SQLAlchemyError as e:
                self.rollback()
                self.logger.warning(
                    f"Headquarters commit failed: {type(e).__name__}",
                    extra={"tenant_id": tenant_id, "error_type": type(e).__name__},
                )

        try:
            with store_timeout("list_locations", timeout_for("query")):
                locations = (
                    self.session.query(Location)
                    .filter(Location.tenant_id == tenant_id, Location.is_active.is_(True))
                    .order_by(
                        case((Location.is_headquarters.is_(True), 0), else_=1),
                        Location.name,
                    )
                    .all()
                )
        except Exception as e:
            self._handle_service_exception("list_locations", e, tenant_id)

        return [LocationRead.model_validate(location) for location in locations]

    @operation()
    def create_location(self, tenant_id: str, location_data: LocationCreate) -> LocationRead:
        """
        Create a location for the tenant.

        Raises:
            ServiceError: DUPLICATE when a second headquarters is requested
        """
        try:
            with store_timeout("create_location", timeout_for("insert")) as deadline:
                with self.transaction(deadline):
                    if location_data.is_headquarters and self.session.query(
                        exists().where(
                            Location.tenant_id == tenant_id,
                            Location.is_headquarters.is_(True),
                            Location.is_active.is_(True),
                        )
                    ).scalar():
                        raise self._headquarters_conflict()

                    location = Location(
                        tenant_id=tenant_id,
                        name=location_data.name,
                        address_line1=location_data.address_line1,
                        address_line2=location_data.address_line2,
                        city=location_data.city,
                        region=location_data.region,
                        postal_code=location_data.postal_code,
                        country=location_data.country or get_config().locations.default_country,
                        is_pickup=location_data.is_pickup,
                        is_dropoff=location_data.is_dropoff,
                        is_headquarters=location_data.is_headquarters,
                        is_active=True,
                    )
                    self.session.add(location)
                    self.session.flush()

        except IntegrityError as e:
            if location_data.is_headquarters:
                raise self._headquarters_conflict(cause=e) from e
            self._handle_service_exception("create_location", e)
        except Exception as e:
            self._handle_service_exception("create_location", e)

        self.logger.info(
            f"Created location: id={location.id}",
            extra={"tenant_id": tenant_id, "is_headquarters": location.is_headquarters},
        )
        return LocationRead.model_validate(location)

    @operation()
    def update_location(
        self, tenant_id: str, location_id: str, location_data: LocationUpdate
    ) -> LocationRead:
        """
        Change the supplied fields of a tenant's location.

        Raises:
            NotFoundError: If the location is missing or belongs to another tenant
            ValidationError: If the headquarters would be deactivated
        """
        changes = location_data.model_dump(exclude_unset=True)
        try:
            with store_timeout("update_location", timeout_for("update")) as deadline:
                with self.transaction(deadline):
                    location = self._get_owned(tenant_id, location_id)

                    if location.is_headquarters and changes.get("is_active") is False:
                        raise ValidationError(
                            "Cannot deactivate headquarters location. Update it instead.",
                            field="is_active",
                            error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
                            location_id=location_id,
                        )
                    if "name" in changes and changes["name"] is None:
                        del changes["name"]

                    for field, value in changes.items():
                        setattr(location, field, value)
                    self.session.flush()
        except Exception as e:
            self._handle_service_exception("update_location", e, location_id)

        return LocationRead.model_validate(location)

    @operation()
    def delete_location(self, tenant_id: str, location_id: str) -> None:
        """
        Delete a tenant's location.

        A location still linked to vehicles is deactivated instead so that
        the links stay valid.

        Raises:
            NotFoundError: If the location is missing or belongs to another tenant
            ValidationError: If the location is the headquarters
        """
        try:
            with store_timeout("delete_location", timeout_for("delete")) as deadline:
                with self.transaction(deadline):
                    location = self._get_owned(tenant_id, location_id)

                    if location.is_headquarters:
                        raise ValidationError(
                            "Cannot delete headquarters location. Update it instead.",
                            error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
                            location_id=location_id,
                        )

                    in_use = self.session.query(
                        exists().where(VehicleLocation.location_id == location_id)
                    ).scalar()
                    if in_use:
                        location.is_active = False
                    else:
                        self.session.delete(location)
        except Exception as e:
            self._handle_service_exception("delete_location", e, location_id)

        self.logger.info(
            "Location deactivated" if in_use else "Location deleted",
            extra={"tenant_id": tenant_id, "location_id": location_id},
        )
