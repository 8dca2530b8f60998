"""
Pydantic schemas for vehicles and their location associations.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import Limits
from ..enums import FuelType, LocationRole, Transmission, VehicleStatus
from ..exceptions import ErrorCode, ValidationError
from .mixins import TenantOwnedRecord

_CENTS = Decimal("0.01")


def _choice(field: str, v, allowed) -> str:
    value = (v.value if hasattr(v, "value") else str(v)).strip().lower()
    choices = [item.value for item in allowed]
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of: {', '.join(choices)}",
            field=field,
            error_code=ErrorCode.INVALID_FORMAT,
            value=v,
        )
    return value


class VehicleAttributes(BaseModel):
    """
    Scalar vehicle attributes as submitted by the vehicle form.

    Every rule is checked here so that nothing is written for invalid input.
    """

    registration_number: str = Field(max_length=20)
    make: str = Field(max_length=100)
    model: str = Field(max_length=100)
    year: int
    color: Optional[str] = Field(default=None, max_length=50)
    transmission: Transmission
    fuel_type: FuelType
    seats: int
    daily_rate: Decimal
    deposit_required: Optional[Decimal] = None
    status: VehicleStatus = VehicleStatus.ACTIVE
    features: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @field_validator("registration_number")
    def normalize_registration(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValidationError(
                "Registration number is required",
                field="registration_number",
                error_code=ErrorCode.MISSING_REQUIRED,
            )
        return v

    @field_validator("make", "model")
    def strip_required(cls, v: str, info) -> str:
        v = v.strip()
        if not v:
            raise ValidationError(
                f"{info.field_name.capitalize()} is required",
                field=info.field_name,
                error_code=ErrorCode.MISSING_REQUIRED,
            )
        return v

    @field_validator("color")
    def strip_color(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("year")
    def validate_year(cls, v: int) -> int:
        max_year = datetime.now().year + 1
        if v < Limits.MIN_VEHICLE_YEAR or v > max_year:
            raise ValidationError(
                f"Year must be between {Limits.MIN_VEHICLE_YEAR} and {max_year}",
                field="year",
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                value=v,
            )
        return v

    @field_validator("transmission", mode="before")
    def validate_transmission(cls, v) -> str:
        return _choice("transmission", v, Transmission)

    @field_validator("fuel_type", mode="before")
    def validate_fuel_type(cls, v) -> str:
        return _choice("fuel_type", v, FuelType)

    @field_validator("status", mode="before")
    def validate_status(cls, v) -> str:
        if v is None:
            return VehicleStatus.ACTIVE.value
        return _choice("status", v, VehicleStatus)

    @field_validator("seats")
    def validate_seats(cls, v: int) -> int:
        if v < Limits.MIN_SEATS or v > Limits.MAX_SEATS:
            raise ValidationError(
                f"Seats must be between {Limits.MIN_SEATS} and {Limits.MAX_SEATS}",
                field="seats",
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                value=v,
            )
        return v

    @field_validator("daily_rate")
    def validate_daily_rate(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValidationError(
                "Daily rate must be greater than 0",
                field="daily_rate",
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                value=v,
            )
        return v.quantize(_CENTS, rounding=ROUND_HALF_UP)

    @field_validator("deposit_required")
    def validate_deposit(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is None:
            return None
        if v < 0:
            raise ValidationError(
                "Deposit cannot be negative",
                field="deposit_required",
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                value=v,
            )
        return v.quantize(_CENTS, rounding=ROUND_HALF_UP)

    @field_validator("features", mode="before")
    def drop_blank_features(cls, v) -> List[str]:
        if v is None:
            return []
        return [str(item).strip() for item in v if item is not None and str(item).strip()]

    def to_columns(self) -> Dict[str, object]:
        """Column values for the vehicle row."""
        data = self.model_dump()
        for key in ("transmission", "fuel_type", "status"):
            data[key] = data[key].value
        return data


class AssociationSet(BaseModel):
    """The pickup and dropoff location ids linked to a vehicle (sorted)."""

    pickup_location_ids: List[str] = Field(default_factory=list)
    dropoff_location_ids: List[str] = Field(default_factory=list)

    @field_validator("pickup_location_ids", "dropoff_location_ids")
    def sort_ids(cls, v: List[str]) -> List[str]:
        return sorted(v)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> "AssociationSet":
        """Build from (location_id, role) rows."""
        pickup: List[str] = []
        dropoff: List[str] = []
        for location_id, role in pairs:
            if role == LocationRole.PICKUP.value:
                pickup.append(location_id)
            elif role == LocationRole.DROPOFF.value:
                dropoff.append(location_id)
        return cls(pickup_location_ids=pickup, dropoff_location_ids=dropoff)

    def as_role_map(self) -> Dict[str, List[str]]:
        return {
            LocationRole.PICKUP.value: list(self.pickup_location_ids),
            LocationRole.DROPOFF.value: list(self.dropoff_location_ids),
        }

    def same_sets(self, other: "AssociationSet") -> bool:
        """Order-independent comparison of both roles."""
        return set(self.pickup_location_ids) == set(other.pickup_location_ids) and set(
            self.dropoff_location_ids
        ) == set(other.dropoff_location_ids)


class VehicleRead(TenantOwnedRecord):
    """
    Schema for reading a vehicle together with its verified location sets.
    """

    created_by: Optional[str] = None
    registration_number: str
    make: str
    model: str
    year: int
    color: Optional[str] = None
    transmission: str
    fuel_type: str
    seats: int
    daily_rate: Decimal
    deposit_required: Optional[Decimal] = None
    status: str
    features: List[str] = Field(default_factory=list)

    pickup_location_ids: List[str] = Field(default_factory=list)
    dropoff_location_ids: List[str] = Field(default_factory=list)

    @field_validator("features", mode="before")
    def none_to_empty(cls, v) -> List[str]:
        return v or []

    @classmethod
    def from_row(cls, vehicle, associations: AssociationSet) -> "VehicleRead":
        """Map a vehicle row plus its association sets at the service boundary."""
        read = cls.model_validate(vehicle)
        return read.model_copy(
            update={
                "pickup_location_ids": associations.pickup_location_ids,
                "dropoff_location_ids": associations.dropoff_location_ids,
            }
        )
