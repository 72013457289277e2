"""Tests for logging setup."""

import json
import logging
import logging.handlers
import sys

import pytest

from Vaultkeep.config.logging_config import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    StandardFormatter,
    get_logger,
    setup_logging,
    setup_logging_from_config,
)
from Vaultkeep.config.settings import LoggingConfig


def make_record(msg="hello %s", args=("world",), level=logging.INFO):
    return logging.LogRecord("VAULTKEEP.Test", level, __file__, 10, msg, args, None)


class TestFormatters:
    """Test log formatters."""

    def test_json_formatter(self):
        """Test JSON output fields."""
        data = json.loads(JSONFormatter().format(make_record()))
        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "VAULTKEEP.Test"

    def test_json_formatter_exception(self):
        """Test exceptions are included."""
        try:
            raise RuntimeError("bad")
        except RuntimeError:
            record = logging.LogRecord("VAULTKEEP.Test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: bad" in data["exception"]

    def test_standard_formatter_without_color(self):
        """Test plain text output."""
        line = StandardFormatter(use_color=False).format(make_record(level=logging.WARNING))
        assert "\033[" not in line
        assert "WARNING" in line
        assert "[VAULTKEEP.Test] hello world" in line

    def test_standard_formatter_with_color(self):
        """Test coloured level names."""
        line = StandardFormatter(use_color=True).format(make_record(level=logging.ERROR))
        assert "\033[31m" in line


class TestSetupLogging:
    """Test logger configuration."""

    def teardown_method(self):
        """Restore the package logger."""
        package_logger = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)
            handler.close()
        package_logger.setLevel(logging.NOTSET)
        package_logger.propagate = True
        logging.getLogger("VAULTKEEP.Cleanup").setLevel(logging.NOTSET)

    def test_console_handler(self):
        """Test a single console handler at the requested level."""
        package_logger = setup_logging("WARNING")
        assert package_logger.name == ROOT_LOGGER_NAME
        assert package_logger.level == logging.WARNING
        assert len(package_logger.handlers) == 1
        assert isinstance(package_logger.handlers[0].formatter, StandardFormatter)

    def test_repeated_setup_does_not_stack_handlers(self):
        """Test calling setup twice replaces handlers."""
        setup_logging("INFO")
        package_logger = setup_logging("INFO", log_format="json")
        assert len(package_logger.handlers) == 1
        assert isinstance(package_logger.handlers[0].formatter, JSONFormatter)

    def test_rotating_file(self, tmp_path):
        """Test the optional rotating file handler."""
        log_file = tmp_path / "vaultkeep.log"
        package_logger = setup_logging("INFO", log_format="json", log_file=str(log_file))

        file_handlers = [h for h in package_logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 10_000_000
        assert file_handlers[0].backupCount == 5

        get_logger("Cleanup").info("cleanup finished")
        file_handlers[0].flush()
        line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
        assert json.loads(line)["message"] == "cleanup finished"

    def test_component_levels(self):
        """Test per-component levels."""
        setup_logging("INFO", component_levels={"VAULTKEEP.Cleanup": "DEBUG"})
        assert logging.getLogger("VAULTKEEP.Cleanup").level == logging.DEBUG

    def test_from_config(self):
        """Test applying a LoggingConfig."""
        package_logger = setup_logging_from_config(LoggingConfig(level="ERROR", format="json"))
        assert package_logger.level == logging.ERROR
        assert isinstance(package_logger.handlers[0].formatter, JSONFormatter)

    def test_get_logger(self):
        """Test loggers live under the package hierarchy."""
        assert get_logger("Restore").name == "VAULTKEEP.Restore"
        assert get_logger("VAULTKEEP.Archive").name == "VAULTKEEP.Archive"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
