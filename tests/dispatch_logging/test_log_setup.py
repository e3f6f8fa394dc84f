"""Tests for logging setup."""

import io
import json
import logging

import pytest

from dispatch_core.core.correlation import CorrelationFilter, with_correlation
from dispatch_core.dispatch_logging import (
    DevFormatter,
    JSONFormatter,
    PIIFilter,
    build_handler,
    setup_logging,
)
from dispatch_core.settings import LogSettings


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    original_handlers = root.handlers.copy()
    original_level = root.level
    yield root
    root.handlers = original_handlers
    root.setLevel(original_level)


@pytest.mark.unit
class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_installs_single_handler(self, root_logger):
        setup_logging()

        assert len(root_logger.handlers) == 1
        handler = root_logger.handlers[0]
        assert isinstance(handler.formatter, DevFormatter)
        assert any(isinstance(f, PIIFilter) for f in handler.filters)
        assert any(isinstance(f, CorrelationFilter) for f in handler.filters)
        assert root_logger.level == logging.INFO

    def test_json_output_and_level(self, root_logger):
        setup_logging(LogSettings(level="DEBUG", format="json", environment="staging"))

        handler = root_logger.handlers[0]
        assert isinstance(handler.formatter, JSONFormatter)
        assert handler.formatter.environment == "staging"
        assert root_logger.level == logging.DEBUG

    def test_repeated_setup_does_not_stack_handlers(self, root_logger):
        setup_logging()
        setup_logging()
        assert len(root_logger.handlers) == 1

    def test_writes_to_given_stream(self, root_logger):
        stream = io.StringIO()
        setup_logging(LogSettings(format="json"), stream=stream)

        with with_correlation("bk_0042"):
            logging.getLogger("dispatch_core.test").warning("Call 602-555-0199 about pickup")

        data = json.loads(stream.getvalue().splitlines()[-1])
        assert data["correlation_id"] == "bk_0042"
        assert data["message"] == "Call [PHONE] about pickup"


@pytest.mark.unit
class TestBuildHandler:
    def test_text_format_uses_dev_formatter(self):
        handler = build_handler(LogSettings(format="text"), io.StringIO())
        assert isinstance(handler.formatter, DevFormatter)
