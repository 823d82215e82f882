"""
Unit tests for logging setup
"""

import logging
import logging.handlers

import pytest

from chatrelay.core import logging as relay_logging
from chatrelay.core.logging import get_logger, initialize_logging, parse_size, qualified_name


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    root = logging.getLogger()
    level = root.level
    monkeypatch.setattr(relay_logging, "_logger_instance", None)
    yield
    for handler in list(root.handlers):
        if isinstance(handler, logging.handlers.RotatingFileHandler) or type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestHelpers:

    @pytest.mark.parametrize("size,expected", [
        ("512", 512),
        ("1KB", 1024),
        ("10MB", 10 * 1024 * 1024),
        ("1gb", 1024 ** 3),
    ])
    def test_parse_size(self, size, expected):
        assert parse_size(size) == expected

    def test_qualified_name(self):
        assert qualified_name("consumer.test") == "chatrelay.consumer.test"
        assert qualified_name("chatrelay.main") == "chatrelay.main"
        assert qualified_name("chatrelay") == "chatrelay"

    def test_get_logger_before_initialize(self):
        assert get_logger("bridge").name == "chatrelay.bridge"


class TestInitialize:

    def test_file_handler_writes(self, temp_dir):
        log_file = temp_dir / "logs" / "relay.log"
        initialize_logging({"logging": {"level": "INFO", "file": str(log_file), "console": False}})

        logger = get_logger("consumer.test")
        logger.info("relayed one message")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "relayed one message" in log_file.read_text()

    def test_no_file_handler_without_path(self):
        initialize_logging({"logging": {"level": "INFO", "file": None, "console": False}})
        assert not any(
            isinstance(h, logging.handlers.RotatingFileHandler) for h in logging.getLogger().handlers
        )

    def test_component_levels(self):
        relay_logger = initialize_logging({
            "logging": {"level": "INFO", "file": None, "console": False,
                        "components": {"example": "warning"}}
        })

        assert logging.getLogger("chatrelay.example").level == logging.WARNING
        assert relay_logger.get_component_level("example") == "WARNING"
        assert relay_logger.get_component_level("matrix") == "INFO"

    def test_root_level(self):
        initialize_logging({"logging": {"level": "debug", "file": None, "console": False}})
        assert logging.getLogger().level == logging.DEBUG
