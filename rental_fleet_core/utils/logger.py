"""
Logging for the fleet core.

Console output goes through ContextAwareLogger, which appends the ``extra``
values to the message text. When the logs queue is enabled, the same records
are shipped as JSON documents to an Azure Storage queue by AzureQueueHandler.
Both sinks are tagged with the tenant currently being served.
"""

import logging
import os
import sys
import traceback
from datetime import UTC, datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from azure.storage.queue import QueueClient, QueueServiceClient

from ..config import get_config
from ..constants import EnvironmentVariable
from .json_utils import dumps

PACKAGE_LOGGER_NAME = "rental_fleet_core"

# Promoted to top-level keys of queue entries
TAGGED_FIELDS = ("tenant_id", "vehicle_id", "location_id")

# Extra keys that would clash with LogRecord attributes (or with the tags the
# filter sets) are stored with a leading underscore.
_RESERVED_KEYS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
    *TAGGED_FIELDS,
}

_configured_logger: Optional["ContextAwareLogger"] = None


def _to_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = get_config().logging.level
    if isinstance(level, str):
        return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    return level


def format_extras(msg: str, extra: Mapping[str, Any]) -> str:
    """``msg | key=value | key=value``"""
    if not extra:
        return msg
    return " | ".join([msg, *(f"{key}={value}" for key, value in extra.items())])


class ContextAwareLogger:
    """
    Wraps a logging.Logger so that ``extra`` values show up in the message.

    Hosts often install their own formatters that ignore record attributes;
    writing the extras into the text keeps them visible everywhere.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log(self, level: str, msg: str, *, extra: Optional[Mapping[str, Any]] = None, **kwargs):
        extra = dict(extra or {})
        record_extra = {(f"_{k}" if k in _RESERVED_KEYS else k): v for k, v in extra.items()}
        getattr(self.logger, level)(format_extras(msg, extra), extra=record_extra, **kwargs)

    def debug(self, msg, **kwargs):
        self.log("debug", msg, **kwargs)

    def info(self, msg, **kwargs):
        self.log("info", msg, **kwargs)

    def warning(self, msg, **kwargs):
        self.log("warning", msg, **kwargs)

    def error(self, msg, **kwargs):
        self.log("error", msg, **kwargs)

    def exception(self, msg, **kwargs):
        """Log at ERROR level with the active exception's traceback."""
        self.log("exception", msg, **kwargs)


class TenantContextFilter(logging.Filter):
    """Sets ``record.tenant_id`` while a tenant context is active."""

    def filter(self, record: logging.LogRecord) -> bool:
        from ..context.tenant_context import TenantContext

        tenant_id = TenantContext.get_current_tenant_id()
        if tenant_id:
            record.tenant_id = tenant_id
        return True


class AzureQueueHandler(logging.Handler):
    """
    Ships log records to an Azure Storage queue as JSON documents.

    Records are buffered and sent once ``batch_size`` of them are pending,
    and on ``flush``/``close``. Delivery problems are reported on stderr and
    never raised into the code that logged.
    """

    def __init__(
        self,
        queue_name: str = "logs-queue",
        connection_string: Optional[str] = None,
        batch_size: int = 10,
    ):
        super().__init__()
        self.queue_name = queue_name
        self.connection_string = connection_string or os.getenv(
            EnvironmentVariable.AZURE_STORAGE_CONNECTION.value
        )
        self.batch_size = max(1, batch_size)
        self.log_buffer: List[Dict[str, Any]] = []

        if not self.connection_string:
            sys.stderr.write("Logs queue disabled: connection string not provided\n")

        self._ensure_queue_exists()

    def _ensure_queue_exists(self) -> bool:
        if not self.connection_string:
            return False
        try:
            service = QueueServiceClient.from_connection_string(self.connection_string)
            existing = {queue.name for queue in service.list_queues()}
            if self.queue_name not in existing:
                service.create_queue(self.queue_name)
            return True
        except Exception as e:
            sys.stderr.write(f"Could not prepare logs queue '{self.queue_name}': {e}\n")
            return False

    def build_entry(self, record: logging.LogRecord) -> Dict[str, Any]:
        """The JSON document sent for one record."""
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for field in TAGGED_FIELDS:
            value = getattr(record, field, None) or getattr(record, f"_{field}", None)
            if value is not None:
                entry[field] = value

        context = {}
        for key, value in vars(record).items():
            if key.startswith("_"):
                key = key[1:]
            elif key in _RESERVED_KEYS:
                continue
            if key not in TAGGED_FIELDS:
                context[key] = value
        if context:
            entry["context"] = context

        if record.exc_info and record.exc_info[0]:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.log_buffer.append(self.build_entry(record))
        except Exception:
            self.handleError(record)
            return
        if len(self.log_buffer) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        if not self.log_buffer or not self.connection_string:
            return

        pending, self.log_buffer = self.log_buffer, []
        try:
            client = QueueClient.from_connection_string(
                conn_str=self.connection_string, queue_name=self.queue_name
            )
        except Exception as e:
            sys.stderr.write(f"Dropped {len(pending)} log entries: {e}\n")
            return

        for entry in pending:
            try:
                client.send_message(dumps(entry))
            except Exception as e:
                sys.stderr.write(f"Dropped log entry: {e}\n")

    def close(self) -> None:
        self.flush()
        super().close()


def configure_logging(
    function_name: str,
    log_level: Optional[Union[int, str]] = None,
    enable_queue: Optional[bool] = None,
    queue_name: Optional[str] = None,
    queue_batch_size: int = 10,
    connection_string: Optional[str] = None,
) -> ContextAwareLogger:
    """
    Set up the process logger: console always, logs queue when enabled.

    Unset arguments are taken from the application config. The returned
    logger is what ``get_logger()`` hands out afterwards.

    Args:
        function_name: Name of the host process or worker
        log_level: Level name or number
        enable_queue: Ship records to the Azure logs queue
        queue_name: Logs queue name
        queue_batch_size: Records buffered before a send
        connection_string: Azure Storage connection string
    """
    global _configured_logger

    app_config = get_config()
    level = _to_level(log_level)
    if enable_queue is None:
        enable_queue = app_config.features.enable_logs_queue

    logger = logging.getLogger(f"{PACKAGE_LOGGER_NAME}.{function_name}")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    tenant_filter = TenantContextFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(message)s"))
    console.addFilter(tenant_filter)
    logger.addHandler(console)

    if enable_queue:
        queue_name = queue_name or app_config.queue.logs_queue_name
        queue_handler = AzureQueueHandler(
            queue_name=queue_name,
            connection_string=connection_string or app_config.queue.connection_string,
            batch_size=queue_batch_size,
        )
        queue_handler.setLevel(level)
        queue_handler.addFilter(tenant_filter)
        logger.addHandler(queue_handler)

    _configured_logger = ContextAwareLogger(logger)
    _configured_logger.info(
        "Logging configured",
        extra={
            "function_name": function_name,
            "queue_logging": enable_queue,
            "queue_name": queue_name if enable_queue else None,
        },
    )
    return _configured_logger


def reset_logging() -> None:
    """Forget the logger set up by configure_logging."""
    global _configured_logger
    _configured_logger = None


def get_logger(log_level: Optional[Union[int, str]] = None) -> ContextAwareLogger:
    """
    The configured process logger, or the package logger when
    configure_logging has not run.
    """
    if _configured_logger is not None:
        return _configured_logger

    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    logger.setLevel(_to_level(log_level))
    return ContextAwareLogger(logger)
