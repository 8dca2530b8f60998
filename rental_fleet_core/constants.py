"""
Names and defaults shared across the fleet core.
"""

from enum import Enum


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Environment variables read by AppConfig and the log queue handler."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    DEBUG = "DEBUG"
    ENABLE_LOGS_QUEUE = "ENABLE_LOGS_QUEUE"
    STORE_TIMEOUT_QUERY = "STORE_TIMEOUT_QUERY"
    STORE_TIMEOUT_INSERT = "STORE_TIMEOUT_INSERT"
    STORE_TIMEOUT_UPDATE = "STORE_TIMEOUT_UPDATE"
    STORE_TIMEOUT_DELETE = "STORE_TIMEOUT_DELETE"
    LOCATION_DEFAULT_COUNTRY = "LOCATION_DEFAULT_COUNTRY"


class OperationStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class LogContextKey(str, Enum):
    OPERATION_ID = "operation_id"
    CORRELATION_ID = "correlation_id"
    SOURCE_MODULE = "source_module"


# Sent by the UI in place of an id to add a location inline
NEW_LOCATION_MARKERS = ("CUSTOM_PICKUP", "CUSTOM_DROPOFF")

HEADQUARTERS_NAME_TEMPLATE = "HQ - {tenant_name}"

DEFAULT_LOCATION_COUNTRY = "Albania"


class Limits:
    MIN_VEHICLE_YEAR = 1990
    MIN_SEATS = 1
    MAX_SEATS = 20


class Timeouts:
    """Store operation limits, in seconds."""

    QUERY = 20
    INSERT = 30
    UPDATE = 30
    DELETE = 20
    DEFAULT = 30
