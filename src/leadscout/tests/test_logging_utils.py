# src/leadscout/tests/test_logging_utils.py
"""
Unit tests for logging setup.

Tests cover:
- JSON formatting with extra fields
- Human readable formatting
- Root logger configuration and logger naming
"""
import json
import logging
from unittest.mock import patch

import pytest

from leadscout.config import config
from leadscout.logging_utils import (
    HumanReadableFormatter,
    StructuredFormatter,
    get_logger,
    setup_logging,
)


def make_record(msg="Search finished", **extra):
    record = logging.LogRecord(
        name="leadscout.pipeline",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """Tests for the log formatters."""

    @pytest.mark.unit
    def test_structured_formatter(self):
        """Test that records render as one JSON object with extras."""
        output = StructuredFormatter(service_name="svc").format(make_record(results=12))
        data = json.loads(output)

        assert data["message"] == "Search finished"
        assert data["level"] == "INFO"
        assert data["service"] == "svc"
        assert data["logger"] == "leadscout.pipeline"
        assert data["extra"] == {"results": 12}

    @pytest.mark.unit
    def test_structured_formatter_without_extra(self):
        """Test that extras can be left out."""
        output = StructuredFormatter(include_extra=False).format(make_record(results=12))
        assert "extra" not in json.loads(output)

    @pytest.mark.unit
    def test_human_readable_formatter(self):
        """Test the single-line development format."""
        output = HumanReadableFormatter(use_colors=False).format(make_record(results=12))
        assert "INFO" in output
        assert "leadscout.pipeline: Search finished" in output
        assert output.endswith("(results=12)")


class TestSetup:
    """Tests for setup_logging and get_logger."""

    @pytest.mark.unit
    def test_setup_logging_configures_root(self):
        """Test that the root level and third-party levels are set."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            logger = setup_logging(level="debug", structured=True)
            assert logger.name == "leadscout"
            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[-1].formatter, StructuredFormatter)

            setup_logging(level="INFO", structured=False)
            assert logging.getLogger("urllib3").level == logging.WARNING
            assert isinstance(root.handlers[-1].formatter, HumanReadableFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    @pytest.mark.unit
    def test_setup_logging_defaults_from_config(self):
        """Test that LOG_LEVEL and APP_ENV decide level and format."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            with patch.object(config, "LOG_LEVEL", "warning"), patch.object(
                config, "APP_ENV", "prod"
            ):
                setup_logging()
                assert root.level == logging.WARNING
                assert isinstance(root.handlers[-1].formatter, StructuredFormatter)

            with patch.object(config, "LOG_LEVEL", "DEBUG"), patch.object(
                config, "APP_ENV", "development"
            ):
                setup_logging()
                assert root.level == logging.DEBUG
                assert isinstance(root.handlers[-1].formatter, HumanReadableFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    @pytest.mark.unit
    def test_get_logger_prefixes_namespace(self):
        """Test that loggers live under the leadscout namespace."""
        assert get_logger("cli").name == "leadscout.cli"
        assert get_logger("leadscout.api").name == "leadscout.api"
