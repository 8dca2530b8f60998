"""
Shared test fixtures.

This module provides database setup, factory wiring and common test
utilities. Tests run against a real SQLite database.
"""

import pytest
from sqlalchemy.orm import Session

from rental_fleet_core.config import reset_config
from rental_fleet_core.db import (
    DatabaseConfig,
    DatabaseManager,
    import_all_models,
)
from rental_fleet_core.db.db_config import Base, initialize_db
from rental_fleet_core.exceptions import clear_correlation_id
from rental_fleet_core.utils.logger import reset_logging
from tests.fixtures.factories import configure_factories


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    return initialize_db(db_config)


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after every test, so each test
    starts from an empty database.
    """
    Base.metadata.create_all(db_manager.engine)
    session = db_manager.get_session()
    configure_factories(session)

    yield session

    session.rollback()
    db_manager.close_session()

    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(autouse=True)
def reset_global_state():
    """Configuration, logger and correlation id are process-wide; reset them per test."""
    yield
    reset_config()
    reset_logging()
    clear_correlation_id()
