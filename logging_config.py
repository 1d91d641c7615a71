"""
Structured logging configuration.

- JSON format for production (machine-parseable)
- Human-readable text for development
- Every entry carries the store namespace, so several stores sharing one
  process (or one log sink) can be told apart
"""

from __future__ import annotations

import json
import logging


class StoreContextFilter(logging.Filter):
    """Stamp records with the namespace of the store that owns the handler."""

    def __init__(self, namespace: str) -> None:
        super().__init__()
        self.namespace = namespace

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "namespace"):
            record.namespace = self.namespace
        return True


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        namespace = getattr(record, "namespace", None)
        if namespace:
            entry["namespace"] = namespace
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def init_logging(config: dict) -> None:
    """Configure the root logger from LOG_FORMAT / LOG_LEVEL / STORE_NAMESPACE."""
    log_format = config.get("LOG_FORMAT", "text")
    log_level = config.get("LOG_LEVEL", "INFO")

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

    # Remove default handlers
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(StoreContextFilter(config.get("STORE_NAMESPACE", "")))
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(namespace)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    root.addHandler(handler)

    # Quiet noisy libraries
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
