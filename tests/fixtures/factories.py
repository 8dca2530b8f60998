"""
Factory Boy factories for generating consistent test data.

Rows are committed so that services under test see them exactly as they
would see data written by an earlier request.
"""

from decimal import Decimal

import factory

from rental_fleet_core.db import Location, Tenant, Vehicle, VehicleLocation

# ==================== BASE FACTORIES ====================


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Base factory with common patterns."""

    class Meta:
        abstract = True
        sqlalchemy_session_persistence = "commit"


# ==================== TENANT FACTORIES ====================


class TenantFactory(BaseFactory):
    """Factory for creating test tenants (rental companies)."""

    class Meta:
        model = Tenant

    id = factory.Faker("uuid4")
    name = factory.Faker("company")
    owner_id = factory.Sequence(lambda n: f"user-{n:04d}")
    contact_email = factory.Faker("company_email")
    is_active = True


# ==================== LOCATION FACTORIES ====================


class LocationFactory(BaseFactory):
    """Factory for creating test locations. Pass ``tenant_id`` explicitly."""

    class Meta:
        model = Location

    id = factory.Faker("uuid4")
    name = factory.Sequence(lambda n: f"Branch {n:03d}")
    address_line1 = factory.Faker("street_address")
    city = factory.Faker("city")
    country = "Albania"
    is_pickup = True
    is_dropoff = True
    is_headquarters = False
    is_active = True


class HeadquartersFactory(LocationFactory):
    """Factory for a tenant's headquarters location."""

    name = factory.Sequence(lambda n: f"HQ - Company {n}")
    is_headquarters = True


# ==================== VEHICLE FACTORIES ====================


class VehicleFactory(BaseFactory):
    """Factory for creating test vehicles. Pass ``tenant_id`` explicitly."""

    class Meta:
        model = Vehicle

    id = factory.Faker("uuid4")
    registration_number = factory.Sequence(lambda n: f"AA{n:03d}BB")
    make = "Toyota"
    model = "Yaris"
    year = 2022
    color = "White"
    transmission = "manual"
    fuel_type = "petrol"
    seats = 5
    daily_rate = Decimal("35.00")
    deposit_required = Decimal("200.00")
    status = "active"
    features = factory.LazyFunction(lambda: ["Air conditioning"])


class VehicleLocationFactory(BaseFactory):
    """Factory for vehicle/location associations."""

    class Meta:
        model = VehicleLocation

    id = factory.Faker("uuid4")
    role = "pickup"


# ==================== FACTORY CONFIGURATION ====================


def configure_factories(session):
    """Configure all factories to use the provided session."""
    factories = [
        TenantFactory,
        LocationFactory,
        HeadquartersFactory,
        VehicleFactory,
        VehicleLocationFactory,
    ]

    for factory_class in factories:
        factory_class._meta.sqlalchemy_session = session


# ==================== FIXTURE DATA GENERATORS ====================


def vehicle_attributes(**overrides):
    """Valid vehicle form attributes as a plain dict."""
    data = {
        "registration_number": "aa123bb",
        "make": "Volkswagen",
        "model": "Golf",
        "year": 2021,
        "color": "Blue",
        "transmission": "manual",
        "fuel_type": "diesel",
        "seats": 5,
        "daily_rate": "45.00",
        "deposit_required": "150",
        "status": "active",
        "features": ["GPS", "  ", "Bluetooth"],
    }
    data.update(overrides)
    return data
