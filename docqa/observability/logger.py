import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# LogRecord's own attributes; everything else on a record came from extra=
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "openai", "posthog")


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    extra={...} fields are merged into the object; a field that collides
    with a base key is written as extra_<key>. Values json can't encode
    are stringified.
    """

    def _base_fields(self, record: logging.LogRecord) -> Dict[str, Any]:

        return {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

    def format(self, record: logging.LogRecord) -> str:

        payload = self._base_fields(record)

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }

        for key, value in extras.items():
            payload[f"extra_{key}" if key in payload else key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def _build_handlers(log_file: Optional[str]) -> List[logging.Handler]:

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:

        log_dir = os.path.dirname(log_file)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        handlers.append(logging.FileHandler(log_file))

    return handlers


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = "logs/app.log"):
    """JSON logs to stdout, and to log_file when one is given."""

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

    # replaces whatever a previous call (or uvicorn) installed
    root.handlers = []

    formatter = JSONFormatter()

    for handler in _build_handlers(log_file):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ============================================================
# REQUEST EVENTS: <operation>_started / _completed / _failed
# ============================================================

def log_request_start(logger, request_id, operation, **fields):
    logger.info(
        f"{operation}_started",
        extra={"request_id": request_id, "operation": operation, **fields},
    )


def log_request_complete(logger, request_id, operation, latency_seconds, **fields):
    logger.info(
        f"{operation}_completed",
        extra={
            "request_id": request_id,
            "operation": operation,
            "latency_seconds": round(latency_seconds, 3),
            **fields,
        },
    )


def log_request_error(logger, request_id, operation, error, **fields):
    logger.error(
        f"{operation}_failed",
        extra={
            "request_id": request_id,
            "operation": operation,
            "error": str(error),
            "error_type": type(error).__name__,
            **fields,
        },
    )
