"""
Tests for LocationService using a real SQLite database.

Covers headquarters provisioning on listing, ordering, tenant isolation and
the headquarters rules for create, update and delete.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from rental_fleet_core.db import Location
from rental_fleet_core.exceptions import (
    ErrorCode,
    NotFoundError,
    OperationTimeoutError,
    ServiceError,
    ValidationError,
)
from rental_fleet_core.schemas import LocationCreate, LocationUpdate
from rental_fleet_core.services import LocationService
from rental_fleet_core.services.location_service import HEADQUARTERS_EXISTS_MESSAGE
from tests.fixtures.factories import (
    HeadquartersFactory,
    LocationFactory,
    VehicleFactory,
    VehicleLocationFactory,
)


class TestListLocations:
    def test_fresh_tenant_gets_headquarters(self, location_service, tenant):
        locations = location_service.list_locations(tenant.id)

        assert len(locations) == 1
        hq = locations[0]
        assert hq.is_headquarters is True
        assert hq.name == "HQ - Tirana Rentals"
        assert hq.is_pickup and hq.is_dropoff

    def test_second_listing_does_not_duplicate(self, location_service, db_session, tenant):
        location_service.list_locations(tenant.id)
        location_service.list_locations(tenant.id)

        assert db_session.query(Location).filter(Location.is_headquarters.is_(True)).count() == 1

    def test_headquarters_first_then_by_name(self, location_service, tenant, headquarters):
        LocationFactory(tenant_id=tenant.id, name="Zog Square")
        LocationFactory(tenant_id=tenant.id, name="Airport")
        LocationFactory(tenant_id=tenant.id, name="Blloku")

        names = [location.name for location in location_service.list_locations(tenant.id)]

        assert names == ["HQ - Tirana Rentals", "Airport", "Blloku", "Zog Square"]

    def test_inactive_and_foreign_hidden(self, location_service, tenant, other_tenant, headquarters):
        LocationFactory(tenant_id=tenant.id, name="Closed", is_active=False)
        LocationFactory(tenant_id=other_tenant.id, name="Elsewhere")

        names = [location.name for location in location_service.list_locations(tenant.id)]

        assert names == ["HQ - Tirana Rentals"]

    def test_provisioning_failure_does_not_fail_listing(
        self, location_service, tenant, branch, monkeypatch
    ):
        def broken_lookup(tenant_id):
            raise RuntimeError("provisioning down")

        monkeypatch.setattr(location_service.provisioner, "has_headquarters", broken_lookup)

        names = [location.name for location in location_service.list_locations(tenant.id)]

        assert names == ["Airport"]

    def test_own_session_commits_headquarters(self, db_session, tenant):
        service = LocationService()
        try:
            service.list_locations(tenant.id)
        finally:
            service.close()

        hq = db_session.query(Location).filter(Location.is_headquarters.is_(True)).one()
        assert hq.tenant_id == tenant.id


class TestCreateLocation:
    def test_create_with_default_country(self, location_service, tenant):
        result = location_service.create_location(
            tenant.id, LocationCreate(name="Rinas Airport", city="Tirana", is_dropoff=False)
        )

        assert result.tenant_id == tenant.id
        assert result.country == "Albania"
        assert result.is_dropoff is False
        assert result.is_active is True

    def test_second_headquarters_rejected(self, location_service, tenant, headquarters):
        with pytest.raises(ServiceError) as exc_info:
            location_service.create_location(
                tenant.id, LocationCreate(name="Other HQ", is_headquarters=True)
            )

        assert exc_info.value.error_code == ErrorCode.DUPLICATE
        assert exc_info.value.message == HEADQUARTERS_EXISTS_MESSAGE

    def test_headquarters_index_conflict_reported_as_duplicate(
        self, location_service, db_session, tenant
    ):
        # An inactive headquarters passes the lookup but still holds the unique index
        HeadquartersFactory(tenant_id=tenant.id, is_active=False)

        with pytest.raises(ServiceError) as exc_info:
            location_service.create_location(
                tenant.id, LocationCreate(name="New HQ", is_headquarters=True)
            )

        assert exc_info.value.error_code == ErrorCode.DUPLICATE
        assert exc_info.value.status_code == 409
        assert exc_info.value.message == HEADQUARTERS_EXISTS_MESSAGE
        assert isinstance(exc_info.value.cause, IntegrityError)
        assert db_session.query(Location).filter(Location.name == "New HQ").count() == 0

    def test_each_tenant_has_its_own_headquarters(self, location_service, other_tenant, headquarters):
        result = location_service.create_location(
            other_tenant.id, LocationCreate(name="HQ - Durres Cars", is_headquarters=True)
        )

        assert result.is_headquarters is True


class TestUpdateLocation:
    def test_partial_update(self, location_service, tenant, branch):
        result = location_service.update_location(
            tenant.id, branch.id, LocationUpdate(city="Rinas", is_pickup=False)
        )

        assert result.city == "Rinas"
        assert result.is_pickup is False
        assert result.name == "Airport"

    def test_locked_lookup_reported_as_timeout(
        self, location_service, db_session, tenant, branch, monkeypatch
    ):
        def locked_query(*entities, **kwargs):
            raise OperationalError("SELECT location", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "query", locked_query)

        with pytest.raises(OperationTimeoutError) as exc_info:
            location_service.update_location(tenant.id, branch.id, LocationUpdate(city="Rinas"))

        assert exc_info.value.operation == "get_location"

    def test_headquarters_cannot_be_deactivated(self, location_service, tenant, headquarters):
        with pytest.raises(ValidationError) as exc_info:
            location_service.update_location(
                tenant.id, headquarters.id, LocationUpdate(is_active=False)
            )

        assert exc_info.value.message == "Cannot deactivate headquarters location. Update it instead."

    def test_headquarters_can_be_renamed(self, location_service, tenant, headquarters):
        result = location_service.update_location(
            tenant.id, headquarters.id, LocationUpdate(name="Main Office")
        )

        assert result.name == "Main Office"
        assert result.is_headquarters is True

    def test_foreign_location_not_found(self, location_service, other_tenant, branch):
        with pytest.raises(NotFoundError):
            location_service.update_location(other_tenant.id, branch.id, LocationUpdate(city="X"))


class TestDeleteLocation:
    def test_unused_location_deleted(self, location_service, db_session, tenant, branch):
        branch_id = branch.id

        location_service.delete_location(tenant.id, branch_id)

        assert db_session.query(Location).filter(Location.id == branch_id).first() is None

    def test_location_in_use_deactivated(self, location_service, db_session, tenant, branch):
        vehicle = VehicleFactory(tenant_id=tenant.id)
        VehicleLocationFactory(vehicle_id=vehicle.id, location_id=branch.id, role="dropoff")

        location_service.delete_location(tenant.id, branch.id)

        stored = db_session.query(Location).filter(Location.id == branch.id).one()
        assert stored.is_active is False

    def test_headquarters_cannot_be_deleted(self, location_service, tenant, headquarters):
        with pytest.raises(ValidationError) as exc_info:
            location_service.delete_location(tenant.id, headquarters.id)

        assert exc_info.value.message == "Cannot delete headquarters location. Update it instead."

    def test_foreign_location_not_found(self, location_service, other_tenant, branch):
        with pytest.raises(NotFoundError):
            location_service.delete_location(other_tenant.id, branch.id)
