"""Tests for logging helpers and the logging diagnostics adapter."""

import logging

import pytest

from probekit.adapters.logging import LoggingDiagnostics
from probekit.core.errors import HookError, MonitoringError
from probekit.core.logs import configure_logging, log_exception, logger
from probekit.core.ports import DiagnosticPort


@pytest.fixture
def clean_logger():
    """Restore the package logger after a test touches its handlers."""
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_debug_installs_one_handler(self, clean_logger) -> None:
        configure_logging(debug=True)
        configure_logging(debug=True)

        ours = [h for h in clean_logger.handlers if getattr(h, "_probekit", False)]
        assert len(ours) == 1
        assert clean_logger.level == logging.DEBUG

    def test_non_debug_leaves_logger_alone(self, clean_logger) -> None:
        before = list(clean_logger.handlers)

        configure_logging(debug=False)

        assert clean_logger.handlers == before


def test_log_exception_records_traceback_and_attributes(caplog) -> None:
    with caplog.at_level(logging.ERROR, logger="probekit"):
        try:
            raise RuntimeError("poll failed")
        except RuntimeError:
            log_exception("status poll crashed", address="localhost:6379")

    [record] = caplog.records
    assert record.message == "status poll crashed"
    assert record.exc_info is not None
    assert record.address == "localhost:6379"


class TestLoggingDiagnostics:
    """Tests for LoggingDiagnostics."""

    def test_implements_diagnostic_port(self) -> None:
        assert isinstance(LoggingDiagnostics(), DiagnosticPort)

    def test_report_logs_structured_fields(self, caplog) -> None:
        diagnostics = LoggingDiagnostics()
        error = HookError("get", "before")
        error.__cause__ = ZeroDivisionError("division by zero")

        with caplog.at_level(logging.WARNING, logger="probekit.diagnostics"):
            diagnostics.report(error)

        [record] = caplog.records
        assert record.levelno == logging.WARNING
        assert record.error_type == "HookError"
        assert record.operation == "get"
        assert record.phase == "before"
        assert record.cause_type == "ZeroDivisionError"
        assert "before hook for 'get' failed" in record.getMessage()

    def test_report_includes_address_for_monitoring_errors(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="probekit.diagnostics"):
            LoggingDiagnostics().report(MonitoringError("db:6379", "timeout"))

        assert caplog.records[0].address == "db:6379"

    def test_history_is_bounded(self) -> None:
        diagnostics = LoggingDiagnostics(logger=logging.getLogger("test.quiet"), history=2)

        for n in range(5):
            diagnostics.report(MonitoringError(f"host:{n}", "down"))

        assert diagnostics.reported == 5
        assert [e.address for e in diagnostics.recent] == ["host:3", "host:4"]
