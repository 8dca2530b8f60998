"""
Pydantic schemas for locations and for the references a vehicle form sends.

A vehicle form submits a list of location ids per role. Besides real ids the
list may hold blanks and the markers meaning "add a new location here";
``to_location_refs`` turns that raw list into tagged references so that
markers never reach a query.
"""

from typing import Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import ErrorCode, ValidationError
from .mixins import TenantOwnedRecord

_ADDRESS_FIELDS = ("address_line1", "address_line2", "city", "region", "postal_code", "country")


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


def _required_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValidationError(
            "Location name is required",
            error_code=ErrorCode.MISSING_REQUIRED,
            field="name",
            value=v,
        )
    return v


class LocationCreate(BaseModel):
    """
    Schema for creating a location.

    ``country`` left empty is filled with the configured default by the service.
    """

    name: str = Field(max_length=200)
    address_line1: Optional[str] = Field(default=None, max_length=200)
    address_line2: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=100)
    region: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)

    is_pickup: bool = True
    is_dropoff: bool = True
    is_headquarters: bool = False

    model_config = ConfigDict(extra="ignore")

    @field_validator("name")
    def validate_name(cls, v: str) -> str:
        return _required_name(v)

    @field_validator(*_ADDRESS_FIELDS)
    def strip_address(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class LocationUpdate(BaseModel):
    """
    Schema for updating a location. Only supplied fields change.
    """

    name: Optional[str] = Field(default=None, max_length=200)
    address_line1: Optional[str] = Field(default=None, max_length=200)
    address_line2: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=100)
    region: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)

    is_pickup: Optional[bool] = None
    is_dropoff: Optional[bool] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("name")
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return _required_name(v)

    @field_validator(*_ADDRESS_FIELDS)
    def strip_address(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class LocationRead(TenantOwnedRecord):
    """
    Schema for reading location data.
    """

    name: str
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    is_pickup: bool
    is_dropoff: bool
    is_headquarters: bool
    is_active: bool


class ExistingLocationRef(BaseModel):
    """Reference to a location row that should already exist."""

    location_id: str

    model_config = ConfigDict(frozen=True)


class NewLocationRef(BaseModel):
    """Request to add a location inline; never looked up in the store."""

    marker: str
    draft: Optional[LocationCreate] = None

    model_config = ConfigDict(frozen=True)


LocationRef = Union[ExistingLocationRef, NewLocationRef]


def to_location_refs(
    values: Optional[Iterable[Union[str, LocationRef, None]]], markers: Sequence[str]
) -> List[LocationRef]:
    """
    Tag raw form values.

    ``None`` and blank strings are dropped, marker values become
    NewLocationRef and everything else becomes ExistingLocationRef.
    Already-tagged references pass through unchanged.
    """
    refs: List[LocationRef] = []
    for value in values or []:
        if value is None:
            continue
        if isinstance(value, (ExistingLocationRef, NewLocationRef)):
            refs.append(value)
            continue
        text = str(value).strip()
        if not text:
            continue
        if text in markers:
            refs.append(NewLocationRef(marker=text))
        else:
            refs.append(ExistingLocationRef(location_id=text))
    return refs


def existing_ids(refs: Iterable[LocationRef]) -> List[str]:
    """The ids of the ExistingLocationRef entries, in input order."""
    return [ref.location_id for ref in refs if isinstance(ref, ExistingLocationRef)]
