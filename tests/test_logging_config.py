"""Tests for logging_config.py utility functions."""

import os
import sys
import logging
from unittest.mock import patch
from og_pipeline.core.logging_config import (
    setup_logger,
    get_logger,
    set_debug_logging,
    logger,
)


class TestSetupLogger:
    """Tests for setup_logger function."""

    def test_setup_logger_default_parameters(self):
        """Test setup_logger with default parameters."""
        test_logger = setup_logger()
        assert test_logger.name == "og-pipeline"
        assert len(test_logger.handlers) == 1
        assert not test_logger.propagate

    def test_setup_logger_custom_level_by_parameter(self):
        test_logger = setup_logger(name="test-param-level", level="DEBUG")
        assert test_logger.level == logging.DEBUG

    def test_setup_logger_custom_level_by_env_var(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}):
            test_logger = setup_logger(name="test-env-level")
            assert test_logger.level == logging.WARNING

    def test_setup_logger_invalid_level_defaults_to_info(self):
        test_logger = setup_logger(name="test-invalid-level", level="INVALID_LEVEL")
        assert test_logger.level == logging.INFO

    def test_setup_logger_structured_format(self):
        test_logger = setup_logger(name="test-structured", format_type="structured")
        format_string = test_logger.handlers[0].formatter._fmt
        assert "%(asctime)s" in format_string
        assert "%(filename)s" in format_string
        assert "%(funcName)s" in format_string

    def test_setup_logger_simple_format_from_env(self):
        with patch.dict(os.environ, {"LOG_FORMAT": "simple"}):
            test_logger = setup_logger(name="test-simple-env")
        format_string = test_logger.handlers[0].formatter._fmt
        assert format_string == "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def test_setup_logger_writes_to_stdout(self):
        test_logger = setup_logger(name="test-stdout")
        assert test_logger.handlers[0].stream is sys.stdout

    def test_setup_logger_does_not_duplicate_handlers(self):
        first = setup_logger(name="test-no-dup")
        second = setup_logger(name="test-no-dup")
        assert first is second
        assert len(second.handlers) == 1


class TestGetLogger:
    def test_get_logger_returns_configured_logger(self):
        test_logger = get_logger("og-pipeline.test-get")
        assert test_logger.name == "og-pipeline.test-get"
        assert len(test_logger.handlers) == 1

    def test_module_level_logger(self):
        assert logger.name == "og-pipeline"


class TestSetDebugLogging:
    def test_switches_named_loggers_and_root_to_debug(self):
        root = logging.getLogger()
        previous_root = root.level
        named = get_logger("og-pipeline.test-debug")
        try:
            set_debug_logging("og-pipeline.test-debug")
            assert named.level == logging.DEBUG
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous_root)
            named.setLevel(logging.INFO)
