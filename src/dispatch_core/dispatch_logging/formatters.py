"""Log formatters for JSON and human-readable output.

Lifecycle and webhook records carry booking context as ``extra`` fields; both
formatters surface it when present.
"""

import json
import logging
from datetime import UTC, datetime

BOOKING_FIELDS = ("booking_id", "driver_id", "operation", "from_status", "to_status")


def _booking_context(record: logging.LogRecord) -> dict[str, str]:
    return {
        field: str(getattr(record, field))
        for field in BOOKING_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shipping."""

    def __init__(self, environment: str = "development"):
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "env": self.environment,
            "correlation_id": getattr(record, "correlation_id", None),
        }
        log_data.update(_booking_context(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class DevFormatter(logging.Formatter):
    """Console format; a transition reads as ``[bk_0001 ASSIGNED->EN_ROUTE]``."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s [%(levelname)8s]%(booking_tag)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        context = _booking_context(record)
        booking_id = context.get("booking_id") or getattr(record, "correlation_id", None)
        record.booking_tag = ""
        if booking_id and booking_id != "-":
            tag = booking_id
            if "from_status" in context and "to_status" in context:
                tag = f"{tag} {context['from_status']}->{context['to_status']}"
            record.booking_tag = f" [{tag}]"
        return super().format(record)
