"""
Unit test conftest.py - Component-specific fixtures.

This module provides fixtures specific to unit testing:
- Service fixtures with test sessions
- A tenant with a headquarters and a branch location
"""

import pytest

from rental_fleet_core.processing import (
    AssociationSynchronizer,
    HeadquartersProvisioner,
    LocationValidator,
)
from rental_fleet_core.services import LocationService, TenantService, VehicleService
from tests.fixtures.factories import HeadquartersFactory, LocationFactory, TenantFactory

# ==================== SERVICE FIXTURES ====================


@pytest.fixture(scope="function")
def tenant_service(db_session):
    """Tenant service with test session."""
    return TenantService(session=db_session)


@pytest.fixture(scope="function")
def location_service(db_session):
    """Location service with test session."""
    return LocationService(session=db_session)


@pytest.fixture(scope="function")
def vehicle_service(db_session):
    """Vehicle service with test session."""
    return VehicleService(session=db_session)


@pytest.fixture(scope="function")
def validator(db_session):
    return LocationValidator(db_session)


@pytest.fixture(scope="function")
def synchronizer(db_session):
    return AssociationSynchronizer(db_session)


@pytest.fixture(scope="function")
def provisioner(db_session):
    return HeadquartersProvisioner(db_session)


# ==================== SCENARIO FIXTURES ====================


@pytest.fixture(scope="function")
def tenant(db_session):
    return TenantFactory(name="Tirana Rentals", owner_id="owner-tirana")


@pytest.fixture(scope="function")
def other_tenant(db_session):
    return TenantFactory(name="Durres Cars", owner_id="owner-durres")


@pytest.fixture(scope="function")
def headquarters(tenant):
    return HeadquartersFactory(tenant_id=tenant.id, name=f"HQ - {tenant.name}")


@pytest.fixture(scope="function")
def branch(tenant):
    return LocationFactory(tenant_id=tenant.id, name="Airport")
