"""Structured JSON logging configuration.

Only metadata is ever logged (ids, counts, durations). Message content and
prompts stay out of log records.
"""

import json
import logging
import sys
from typing import Any

# LogRecord attributes copied into the JSON payload under camelCase keys
_EXTRA_FIELDS = {
    "session_id": "sessionId",
    "request_id": "requestId",
    "chat_type": "chatType",
    "attempt": "attempt",
    "event_type": "eventType",
}


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        for attr, key in _EXTRA_FIELDS.items():
            if hasattr(record, attr):
                log_obj[key] = getattr(record, attr)

        return json.dumps(log_obj, default=str)


def setup_logging(debug: bool = False) -> None:
    """Configure structured JSON logging."""
    level = logging.DEBUG if debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    logging.root.handlers = [handler]
    logging.root.setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)
