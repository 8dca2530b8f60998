"""
Location validation for vehicle associations.

Checks that every location id a vehicle form submits for a role belongs to
the tenant, is active and can serve that role. All offending ids are
reported together; a list is either accepted whole or rejected.
"""

import uuid
from typing import Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_config
from ..context.operation_context import operation
from ..db.db_location_models import Location
from ..enums import LocationRole
from ..exceptions import ErrorCode, InvalidLocationReferenceError, ServiceError
from ..schemas.location_schema import LocationRef, existing_ids, to_location_refs
from ..utils.logger import get_logger
from ..utils.timeout import store_timeout, timeout_for

REASON_NOT_FOUND = "not found for your company"
REASON_INACTIVE = "inactive"

_ROLE_FLAGS = {
    LocationRole.PICKUP: ("is_pickup", "not a pickup location"),
    LocationRole.DROPOFF: ("is_dropoff", "not a dropoff location"),
}


def normalize_location_id(value: str) -> str:
    """Strip whitespace; ids that parse as UUIDs get their canonical lower-case form."""
    text = value.strip()
    try:
        return str(uuid.UUID(text))
    except ValueError:
        return text


def normalize_location_ids(ids: Iterable[str]) -> List[str]:
    """Normalize and de-duplicate, keeping first-seen order."""
    seen = set()
    result = []
    for raw in ids:
        location_id = normalize_location_id(raw)
        if location_id and location_id not in seen:
            seen.add(location_id)
            result.append(location_id)
    return result


class LocationValidator:
    """
    Validates candidate location ids for one role against one tenant.

    Has no side effects; only reads.
    """

    def __init__(self, session: Session, markers: Optional[Sequence[str]] = None):
        self.session = session
        self.markers = (
            list(markers) if markers is not None else get_config().locations.new_location_markers
        )
        self.logger = get_logger()

    @operation()
    def validate(
        self,
        tenant_id: str,
        candidates: Optional[Iterable[Union[str, LocationRef, None]]],
        role: Union[LocationRole, str],
    ) -> List[str]:
        """
        Return the normalized, de-duplicated ids that may be linked for ``role``.

        Blanks and new-location markers are ignored.

        Raises:
            InvalidLocationReferenceError: naming every id that is missing,
                owned by another tenant, inactive or lacks the role flag
            OperationTimeoutError: If the lookup exceeded its budget
            ServiceError: DATABASE_ERROR if the store failed
        """
        role = LocationRole(role)
        refs = to_location_refs(candidates, self.markers)
        ids = normalize_location_ids(existing_ids(refs))
        if not ids:
            return []

        try:
            with store_timeout("validate_locations", timeout_for("query")):
                rows = (
                    self.session.query(
                        Location.id,
                        Location.tenant_id,
                        Location.is_active,
                        Location.is_pickup,
                        Location.is_dropoff,
                    )
                    .filter(Location.id.in_(ids))
                    .all()
                )
        except SQLAlchemyError as e:
            self.logger.error(
                "Store failure during validate_locations",
                extra={"tenant_id": tenant_id, "error_type": type(e).__name__},
            )
            raise ServiceError(
                "The location check could not be completed. Please try again.",
                error_code=ErrorCode.DATABASE_ERROR,
                operation="validate_locations",
                cause=e,
                status_code=503,
            ) from e

        found = {row.id: row for row in rows}
        flag_name, flag_reason = _ROLE_FLAGS[role]
        reasons: Dict[str, str] = {}

        for location_id in ids:
            row = found.get(location_id)
            # Rows of other tenants are reported exactly like missing rows
            if row is None or row.tenant_id != tenant_id:
                reasons[location_id] = REASON_NOT_FOUND
            elif not row.is_active:
                reasons[location_id] = REASON_INACTIVE
            elif not getattr(row, flag_name):
                reasons[location_id] = flag_reason

        if reasons:
            self.logger.warning(
                f"Rejected {role.value} locations",
                extra={
                    "tenant_id": tenant_id,
                    "role": role.value,
                    "invalid_ids": list(reasons),
                    "reasons": reasons,
                },
            )
            raise InvalidLocationReferenceError(role.value, list(reasons), reasons)

        return ids
