"""
Structured logging for the academy service.

One handler on the `academy` logger: JSON lines in production, readable
lines elsewhere. Every record carries the request id of the request that
produced it (see RequestIdMiddleware).
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Record attributes promoted to top-level JSON keys
_STRUCTURED_FIELDS = (
    "user_id",
    "course_id",
    "lesson_id",
    "event_id",
    "event_type",
    "error_code",
    "status",
    "path",
    "method",
    "latency_bucket",
)

# Never written to logs verbatim
_SENSITIVE_KEYS = frozenset({"password", "token", "secret", "authorization", "cookie", "signature"})

_LATENCY_BUCKETS = ((10, "<10ms"), (100, "10-100ms"), (500, "100-500ms"), (1000, "500-1000ms"))


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


@contextmanager
def request_context(request_id: str) -> Iterator[str]:
    """Bind `request_id` for everything logged inside the block."""
    token = request_id_ctx_var.set(request_id)
    try:
        yield request_id
    finally:
        request_id_ctx_var.reset(token)


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for upper, label in _LATENCY_BUCKETS:
        if latency_ms < upper:
            return label
    return ">=1000ms"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class AcademyFormatter(logging.Formatter):
    """Renders a record as a JSON object or as a single readable line."""

    def __init__(self, as_json: bool = False):
        super().__init__()
        self.as_json = as_json

    def _timestamp(self, record: logging.LogRecord) -> str:
        return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")

    def _fields(self, record: logging.LogRecord) -> Dict[str, object]:
        return {
            name: getattr(record, name)
            for name in _STRUCTURED_FIELDS
            if getattr(record, name, None) is not None
        }

    def format(self, record: logging.LogRecord) -> str:
        if self.as_json:
            payload = {
                "timestamp": self._timestamp(record),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                "request_id": getattr(record, "request_id", None),
            }
            payload.update(self._fields(record))
            if record.exc_info:
                payload["exc_info"] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str)

        rid = getattr(record, "request_id", None)
        parts = [self._timestamp(record), record.levelname, f"[{record.name}]"]
        if rid:
            parts.append(f"[rid={rid}]")
        parts.append(record.getMessage())
        parts.extend(f"{key}={value}" for key, value in self._fields(record).items())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(env: str = "development", level: Optional[str] = None) -> None:
    """Install the academy handler. `LOG_LEVEL` overrides the default INFO."""
    logger = logging.getLogger("academy")
    logger.setLevel((level or os.getenv("LOG_LEVEL") or "INFO").upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(AcademyFormatter(as_json=env.lower() == "production"))
    handler.addFilter(RequestIdFilter())

    logger.handlers = [handler]
    logger.propagate = True

    # uvicorn keeps its own handlers; don't duplicate its lines through root
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False


def _loggable(key: str, value: object, limit: int = 500) -> str:
    if any(marker in key.lower() for marker in _SENSITIVE_KEYS):
        return "[redacted]"
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    return text if len(text) <= limit else text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    user_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
) -> None:
    """Log `msg` with structured fields; free-form extras are truncated and redacted."""
    logger = logging.getLogger("academy")
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    payload: Dict[str, object] = {"user_id": user_id}
    if event_type:
        payload["event_type"] = event_type
    if error_code:
        payload["error_code"] = error_code
    for key, value in (extra or {}).items():
        payload[key] = _loggable(key, value)

    getattr(logger, level, logger.info)(msg, extra=payload)
