"""Centralized logging configuration.

The proposal pipeline attaches `fingerprint`, `stage` and `error_code` to
its records via `extra={...}`. PipelineContextFilter makes those fields
visible in both output modes: appended as `[key=value]` pairs to text
lines, and as top-level keys in JSON lines.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from app.core.config import settings

CONTEXT_FIELDS = ("fingerprint", "stage", "error_code")

# Libraries that log every request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "slowapi")


def _record_context(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None)}


class PipelineContextFilter(logging.Filter):
    """Render pipeline context onto `record.context` for the text format."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _record_context(record)
        record.context = "".join(f" [{k}={v}]" for k, v in context.items())
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_context(record),
        }
        if record.exc_info and record.exc_info[1]:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


def _build_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(PipelineContextFilter())
    if settings.log_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s%(context)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    return handler


def setup_logging() -> None:
    """Install a single stdout handler on the root logger."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.addHandler(_build_handler(level))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
