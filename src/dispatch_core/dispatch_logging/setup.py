"""Logging setup driven by LogSettings."""

import logging
import sys
from typing import TextIO

from dispatch_core.core.correlation import CorrelationFilter
from dispatch_core.settings import LogSettings

from .filters import PIIFilter
from .formatters import DevFormatter, JSONFormatter


def build_handler(settings: LogSettings, stream: TextIO) -> logging.Handler:
    """Stream handler that masks customer contact data and tags booking context."""
    handler = logging.StreamHandler(stream)
    if settings.format == "json":
        handler.setFormatter(JSONFormatter(settings.environment))
    else:
        handler.setFormatter(DevFormatter())
    handler.addFilter(PIIFilter())
    handler.addFilter(CorrelationFilter())
    return handler


def setup_logging(settings: LogSettings | None = None, *, stream: TextIO | None = None) -> None:
    """Replace the root logger's handlers with one configured from ``settings``.

    Log lines go to stderr unless ``stream`` says otherwise, so command output
    on stdout stays machine-readable.
    """
    settings = settings or LogSettings()
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(build_handler(settings, stream or sys.stderr))
    root_logger.setLevel(settings.level)
