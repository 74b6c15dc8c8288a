# logging_utils.py
# Central structured logging for Airport-Routes (Loki-friendly JSON lines)

import json
import logging
import os
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Per-search correlation id (set by the pipeline and the API middleware)
_search_id: ContextVar[Optional[str]] = ContextVar("search_id", default=None)

SERVICE_NAME = os.getenv("SERVICE_NAME", "airportroutes")
ENV = os.getenv("APP_ENV", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Optional log file for Promtail/Loki; stdout only when empty
LOG_FILE = os.getenv("LOG_FILE", "")

# Built-in LogRecord fields that must never be overwritten
_RESERVED_LOG_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}


class LokiJSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Each log line looks like:
        {
            "ts": "...",
            "level": "INFO",
            "logger": "airportroutes.pipeline",
            "service": "airportroutes",
            "env": "dev",
            "message": "...",
            "search_id": "...",
            ... plus all structured fields ...
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "service": SERVICE_NAME,
            "env": ENV,
            "message": record.getMessage(),
        }

        sid = _search_id.get()
        if sid:
            payload["search_id"] = sid

        for key, value in record.__dict__.items():
            if key.startswith("_"):
                continue
            if key in payload:
                continue
            if key in _RESERVED_LOG_FIELDS:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging() -> None:
    """
    Configure root logging once for the whole process.
    Output -> JSON to stdout, and to LOG_FILE when one is configured.
    """
    root = logging.getLogger()

    # Prevent double config
    if getattr(root, "_routes_configured", False):
        return

    root.setLevel(LOG_LEVEL)

    formatter = LokiJSONFormatter()

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if LOG_FILE:
        try:
            log_dir = os.path.dirname(LOG_FILE)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = logging.FileHandler(LOG_FILE)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
        except OSError as e:
            # If file logging fails, keep stdout logging only
            root.error(f"Failed to set up file logging: {e}")

    root._routes_configured = True  # type: ignore[attr-defined]


def new_search_id() -> str:
    sid = uuid.uuid4().hex
    _search_id.set(sid)
    return sid


def log_event(
    logger: logging.Logger,
    event: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Structured logging helper.

    Ensures fields never collide with LogRecord built-ins.
    Automatically rewrites:
        filename → field_filename
        module   → field_module
        etc.
    """
    safe_fields: Dict[str, Any] = {}

    for key, value in fields.items():
        if key in _RESERVED_LOG_FIELDS:
            safe_fields[f"field_{key}"] = value
        else:
            safe_fields[key] = value

    logger.log(level, event, extra={"event": event, **safe_fields})


class RoutesLogger:
    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.timers: Dict[str, float] = {}

    def info(self, msg, *args, **kwargs):
        self.logger.info(msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self.logger.warning(msg, *args, **kwargs)

    def start_timer(self, name: str):
        sid = _search_id.get() or "global"
        key = f"{sid}:{name}"
        self.timers[key] = time.perf_counter()

    def end_timer(self, name: str) -> float:
        sid = _search_id.get() or "global"
        key = f"{sid}:{name}"
        start = self.timers.pop(key, None)
        if start:
            return time.perf_counter() - start
        return 0.0

    def clear_timers(self) -> int:
        """Drop every timer still open for the current search."""
        prefix = f"{_search_id.get() or 'global'}:"
        stale = [key for key in self.timers if key.startswith(prefix)]
        for key in stale:
            del self.timers[key]
        return len(stale)

    def log_extraction(self, count: int, rows: int, section: str):
        self.logger.info(f"Extraction: {count} flights from {rows} rows under '{section}'")


def get_logger(name: str) -> RoutesLogger:
    return RoutesLogger(name)
