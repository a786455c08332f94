"""
Tests for exception types and logging helpers.
"""

import logging

import pytest

from echoes.core.exceptions import ConfigurationError, DeliveryError, EchoesError, EndpointError
from echoes.core.logging_utils import configure_logging, normalize_log_level


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_hierarchy(self):
        assert issubclass(ConfigurationError, EchoesError)
        assert issubclass(DeliveryError, EndpointError)
        assert issubclass(EndpointError, EchoesError)

    def test_configuration_error_field(self):
        error = ConfigurationError("bad value", field="privacy_level")
        assert error.field == "privacy_level"
        assert error.details == {"field": "privacy_level"}
        assert "bad value" in str(error)

    def test_delivery_error(self):
        error = DeliveryError("HTTP 502", "stars", http_status=502, tag="http-502")
        assert str(error) == "[stars] HTTP 502"
        assert error.to_dict() == {
            "error": "DeliveryError",
            "message": "HTTP 502",
            "details": {"endpoint": "stars", "http_status": 502, "tag": "http-502"},
        }


class TestLogging:
    """Tests for logging configuration."""

    @pytest.fixture
    def restore_logging(self):
        root = logging.getLogger()
        saved_level = root.level
        saved_handlers = list(root.handlers)
        saved_handler_levels = [h.level for h in saved_handlers]
        echoes_level = logging.getLogger("echoes").level
        yield
        for handler in list(root.handlers):
            if handler not in saved_handlers:
                root.removeHandler(handler)
                handler.close()
        for handler, level in zip(saved_handlers, saved_handler_levels):
            handler.setLevel(level)
        root.setLevel(saved_level)
        logging.getLogger("echoes").setLevel(echoes_level)

    @pytest.mark.parametrize("value,expected", [
        (None, "INFO"),
        ("", "INFO"),
        ("warn", "WARNING"),
        (" debug ", "DEBUG"),
        ("critic", "CRITICAL"),
        ("verbose", "INFO"),
    ])
    def test_normalize(self, value, expected):
        assert normalize_log_level(value) == expected

    def test_configure_with_file(self, tmp_path, restore_logging):
        log_file = tmp_path / "logs" / "echoes.log"
        assert configure_logging("debug", extra_loggers=["httpx"], log_file=log_file) == "DEBUG"
        assert logging.getLogger("echoes").level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.DEBUG

        logging.getLogger("echoes.test").debug("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "written to file" in log_file.read_text(encoding="utf-8")

        # A second call must not attach a duplicate handler
        before = len(logging.getLogger().handlers)
        configure_logging("debug", log_file=log_file)
        assert len(logging.getLogger().handlers) == before
        logging.getLogger("httpx").setLevel(logging.NOTSET)
