"""
Unit tests for logger utilities.

Tests ContextAwareLogger, TenantContextFilter and AzureQueueHandler. The
Azure SDK clients are the only thing mocked.
"""

import json
import logging
from io import StringIO
from unittest.mock import MagicMock, Mock, patch

import pytest

from rental_fleet_core.context.tenant_context import tenant_context
from rental_fleet_core.utils.logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    TenantContextFilter,
    configure_logging,
    get_logger,
)

CONNECTION_STRING = (
    "DefaultEndpointsProtocol=https;AccountName=test;AccountKey=dGVzdA==;"
    "EndpointSuffix=core.windows.net"
)


def _record(msg="Vehicle saved", **attrs):
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestContextAwareLogger:
    """Test ContextAwareLogger functionality."""

    def setup_method(self):
        self.mock_logger = Mock(spec=logging.Logger)
        self.context_logger = ContextAwareLogger(self.mock_logger)

    def test_no_extras(self):
        self.context_logger.info("Plain message")
        self.mock_logger.info.assert_called_once_with("Plain message", extra={})

    def test_extras_formatted_into_message(self):
        self.context_logger.warning(
            "Rejected pickup locations", extra={"role": "pickup", "count": 2}
        )

        self.mock_logger.warning.assert_called_once_with(
            "Rejected pickup locations | role=pickup | count=2",
            extra={"role": "pickup", "count": 2},
        )

    def test_reserved_record_fields_are_prefixed(self):
        self.context_logger.info("Saved", extra={"tenant_id": "t-1", "module": "x"})

        _, kwargs = self.mock_logger.info.call_args
        assert kwargs["extra"] == {"_tenant_id": "t-1", "_module": "x"}

    def test_reserved_fields_do_not_break_real_logger(self):
        stream = StringIO()
        real = logging.getLogger("test.reserved")
        real.handlers = [logging.StreamHandler(stream)]
        real.setLevel(logging.INFO)

        ContextAwareLogger(real).info("Saved", extra={"name": "shadowed", "message": "m"})

        assert "Saved | name=shadowed | message=m" in stream.getvalue()

    def test_exc_info_passed_through(self):
        self.context_logger.error("Failed", exc_info=True)
        self.mock_logger.error.assert_called_once_with("Failed", extra={}, exc_info=True)


class TestTenantContextFilter:
    def test_adds_tenant_id_inside_context(self):
        record = _record()
        with tenant_context("tenant-abc"):
            assert TenantContextFilter().filter(record) is True

        assert record.tenant_id == "tenant-abc"

    def test_leaves_record_untouched_outside_context(self):
        record = _record()
        assert TenantContextFilter().filter(record) is True
        assert not hasattr(record, "tenant_id")


class TestAzureQueueHandler:
    """Test AzureQueueHandler with the Azure SDK mocked."""

    def test_init_without_connection_string(self, monkeypatch):
        monkeypatch.delenv("AzureWebJobsStorage", raising=False)
        with patch("sys.stderr", new_callable=StringIO) as mock_stderr:
            handler = AzureQueueHandler(queue_name="logs-queue")

        assert handler.connection_string is None
        assert "connection string not provided" in mock_stderr.getvalue()

    @patch("rental_fleet_core.utils.logger.QueueServiceClient")
    def test_creates_missing_queue(self, mock_service_class):
        mock_service = MagicMock()
        mock_service.list_queues.return_value = []
        mock_service_class.from_connection_string.return_value = mock_service

        with patch("sys.stderr", new_callable=StringIO):
            AzureQueueHandler(queue_name="logs-queue", connection_string=CONNECTION_STRING)

        mock_service.create_queue.assert_called_once_with("logs-queue")

    def test_build_entry(self):
        with patch.object(AzureQueueHandler, "_ensure_queue_exists", return_value=True):
            handler = AzureQueueHandler(connection_string=CONNECTION_STRING)

        entry = handler.build_entry(
            _record(tenant_id="t-1", vehicle_id="v-1", _operation="save_vehicle", role="pickup")
        )

        assert entry["message"] == "Vehicle saved"
        assert entry["tenant_id"] == "t-1"
        assert entry["vehicle_id"] == "v-1"
        assert entry["context"]["operation"] == "save_vehicle"
        assert entry["context"]["role"] == "pickup"

    @patch("rental_fleet_core.utils.logger.QueueClient")
    def test_batches_until_full(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.from_connection_string.return_value = mock_client

        with patch.object(AzureQueueHandler, "_ensure_queue_exists", return_value=True):
            handler = AzureQueueHandler(connection_string=CONNECTION_STRING, batch_size=2)

        handler.emit(_record("first"))
        mock_client.send_message.assert_not_called()

        handler.emit(_record("second"))

        assert mock_client.send_message.call_count == 2
        sent = json.loads(mock_client.send_message.call_args_list[0][0][0])
        assert sent["message"] == "first"
        assert handler.log_buffer == []

    @patch("rental_fleet_core.utils.logger.QueueClient")
    def test_close_flushes(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.from_connection_string.return_value = mock_client

        with patch.object(AzureQueueHandler, "_ensure_queue_exists", return_value=True):
            handler = AzureQueueHandler(connection_string=CONNECTION_STRING, batch_size=10)

        handler.emit(_record("pending"))
        handler.close()

        mock_client.send_message.assert_called_once()


class TestConfigureLogging:
    def test_console_only_by_default(self):
        logger = configure_logging("fleet-test", log_level="INFO", enable_queue=False)

        assert isinstance(logger, ContextAwareLogger)
        handlers = logger.logger.handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert get_logger() is logger

    def test_queue_handler_added_when_enabled(self):
        with patch.object(AzureQueueHandler, "_ensure_queue_exists", return_value=True):
            logger = configure_logging(
                "fleet-queue-test",
                log_level=logging.DEBUG,
                enable_queue=True,
                connection_string=CONNECTION_STRING,
            )

        queue_handlers = [h for h in logger.logger.handlers if isinstance(h, AzureQueueHandler)]
        assert len(queue_handlers) == 1
        assert queue_handlers[0].queue_name == "logs-queue"

        queue_handlers[0].log_buffer.clear()
        logger.logger.removeHandler(queue_handlers[0])

    @pytest.mark.parametrize("level,expected", [("debug", logging.DEBUG), ("ERROR", logging.ERROR)])
    def test_get_logger_level(self, level, expected):
        logger = get_logger(log_level=level)
        assert logger.logger.level == expected
