"""Centralized logging configuration.

Prompts and completions can carry anything a user types, so:
- Structured logs (JSON) go to stdout for centralized collection
- Prompt/completion text is never logged; lengths, categories and rule names are logged instead
- Extra fields are optional; the formatter must never raise due to missing keys
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
from datetime import UTC, datetime
from typing import Any

# Always present in the payload (null when the record has no such attribute).
_REQUEST_FIELDS = ("request_id", "method", "path", "status_code", "duration_ms")

# Copied into the payload only when set on the record via `extra`.
_GATEWAY_FIELDS = (
    "provider",
    "model",
    "direction",
    "category",
    "categories",
    "moderated",
    "prompt_length",
    "response_length",
    "error_kind",
    "upstream_status",
    "rating",
)


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per record; missing `extra` fields never raise."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({name: getattr(record, name, None) for name in _REQUEST_FIELDS})
        payload.update(
            {
                name: getattr(record, name)
                for name in _GATEWAY_FIELDS
                if getattr(record, name, None) is not None
            }
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_logging_config(level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JsonFormatter}},
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["stdout"]},
        # httpx logs every upstream request line at INFO.
        "loggers": {"httpx": {"level": "WARNING"}},
    }


def setup_logging() -> None:
    """Configure application logging (JSON to stdout); `LOG_LEVEL` defaults to INFO."""

    logging.config.dictConfig(build_logging_config(os.getenv("LOG_LEVEL", "INFO").upper()))
