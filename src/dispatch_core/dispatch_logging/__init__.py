from .filters import PIIFilter
from .formatters import DevFormatter, JSONFormatter
from .setup import build_handler, setup_logging

__all__ = ["DevFormatter", "JSONFormatter", "PIIFilter", "build_handler", "setup_logging"]
