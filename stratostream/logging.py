"""
stratostream - Structured Logging

JSON log records enriched with the correlation fields of the stream or
request being processed.

Nothing is printed unless the application asks for it: the package logger
carries a NullHandler, and handlers are only installed by ``setup_logging``
or when STRATOSTREAM_LOG_LEVEL is set (STRATOSTREAM_LOG_FORMAT picks
``json`` or ``plain``).

Usage:
    from stratostream.logging import get_logger, setup_logging

    setup_logging(level="DEBUG")

    logger = get_logger(__name__)
    logger.info("Stream started", model="claude-sonnet-4-20250514")

Output:
    {"timestamp": "2025-01-15T10:30:00.123+00:00", "level": "INFO",
     "logger": "stratostream.stream", "message": "Stream started",
     "stream_id": "req_1a2b3c", "model": "claude-sonnet-4-20250514"}
"""

import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, MutableMapping, Optional, Tuple, Union

PACKAGE_LOGGER = "stratostream"

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())

_current_context: ContextVar[Optional["LogContext"]] = ContextVar(
    "stratostream_log_context", default=None
)

# Attributes every LogRecord already has; extra fields may not reuse them
_RESERVED_RECORD_KEYS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


@dataclass
class LogContext:
    """
    Correlation fields attached to every record logged in this context.

    Each asyncio task gets its own copy of the context variable, so a
    stream task can set its fields without touching the caller's.
    """
    request_id: str = ""
    stream_id: str = ""
    model: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def get_current(cls) -> Optional["LogContext"]:
        return _current_context.get()

    @classmethod
    def set_current(cls, ctx: Optional["LogContext"]) -> Token:
        """Make ``ctx`` current; returns the token to restore the previous one."""
        return _current_context.set(ctx)

    @classmethod
    def clear(cls) -> None:
        _current_context.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator["LogContext"]:
        """
        Extend the current context for the duration of a block.

        Example:
            with LogContext.bind(request_id="req_1"):
                logger.info("sending")   # carries request_id
        """
        base = cls.get_current() or cls()
        ctx = replace(base, extra=dict(base.extra))
        ctx.update(**fields)
        token = cls.set_current(ctx)
        try:
            yield ctx
        finally:
            _current_context.reset(token)

    def update(self, **fields: Any) -> None:
        """Set known fields; anything else lands in ``extra``."""
        for key, value in fields.items():
            if key in ("request_id", "stream_id", "model"):
                setattr(self, key, value)
            else:
                self.extra[key] = value

    def to_dict(self) -> Dict[str, Any]:
        """Non-empty fields, flattened."""
        result = {
            key: value
            for key, value in (
                ("request_id", self.request_id),
                ("stream_id", self.stream_id),
                ("model", self.model),
            )
            if value
        }
        result.update(self.extra)
        return result


class JSONFormatter(logging.Formatter):
    """
    Render each record as a single JSON object.

    Fields, in order: timestamp, level, logger, message, location,
    exception, then the current LogContext, then the record's extra
    fields. Extra fields whose name looks like a credential are replaced
    by ``[REDACTED]``.
    """

    SENSITIVE_FIELDS = frozenset({
        "api_key", "apikey", "authorization", "credential",
        "password", "private_key", "secret", "token",
    })
    REDACTED = "[REDACTED]"

    def __init__(
        self,
        include_timestamp: bool = True,
        include_location: bool = False,
        redact_sensitive: bool = True,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_location = include_location
        self.redact_sensitive = redact_sensitive

    def format(self, record: logging.LogRecord) -> str:
        payload = self._base_fields(record)

        ctx = LogContext.get_current()
        if ctx is not None:
            payload.update(ctx.to_dict())

        payload.update(self._extra_fields(record))
        return json.dumps(payload, default=str, ensure_ascii=False)

    def _base_fields(self, record: logging.LogRecord) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if self.include_timestamp:
            created = datetime.fromtimestamp(record.created, tz=timezone.utc)
            fields["timestamp"] = created.isoformat(timespec="milliseconds")
        fields["level"] = record.levelname
        fields["logger"] = record.name
        fields["message"] = record.getMessage()
        if self.include_location:
            fields["location"] = f"{record.filename}:{record.lineno}"
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)
        return fields

    def _extra_fields(self, record: logging.LogRecord) -> Dict[str, Any]:
        return {
            key: self.REDACTED if self.redact_sensitive and self.is_sensitive(key) else value
            for key, value in vars(record).items()
            if key not in _RESERVED_RECORD_KEYS
        }

    @classmethod
    def is_sensitive(cls, name: str) -> bool:
        lowered = name.lower().replace("-", "_")
        return any(marker in lowered for marker in cls.SENSITIVE_FIELDS)


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter taking structured fields as keyword arguments.

        logger.warning("Retrying", attempt=2, delay_ms=800)

    Keywords that collide with LogRecord attributes are stored with a
    ``field_`` prefix instead of raising.
    """

    _PASSTHROUGH = ("exc_info", "stack_info", "stacklevel", "extra")

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = dict(self.extra or {})
        fields.update(kwargs.pop("extra", None) or {})
        for key in [k for k in kwargs if k not in self._PASSTHROUGH]:
            fields[key] = kwargs.pop(key)

        kwargs["extra"] = {
            (f"field_{key}" if key in _RESERVED_RECORD_KEYS else key): value
            for key, value in fields.items()
        }
        return msg, kwargs


_configured = False


def _build_formatter(json_output: bool, include_location: bool, redact_sensitive: bool) -> logging.Formatter:
    if json_output:
        return JSONFormatter(include_location=include_location, redact_sensitive=redact_sensitive)
    return logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")


def setup_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = True,
    include_location: bool = False,
    redact_sensitive: bool = True,
) -> None:
    """
    Send stratostream logs to stderr.

    Only the ``stratostream`` logger tree is configured; the root logger
    and the application's own handlers are left alone. Calling it again
    replaces the handler installed by the previous call.

    Args:
        level: Level name or number
        json_output: JSON lines (True) or a plain text format (False)
        include_location: Add ``file:line`` to JSON records
        redact_sensitive: Mask credential-like extra fields
    """
    global _configured

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in [h for h in package_logger.handlers if not isinstance(h, logging.NullHandler)]:
        package_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_build_formatter(json_output, include_location, redact_sensitive))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False

    # httpx logs every request at INFO
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> StructuredLogger:
    """
    Return a StructuredLogger for ``name``.

    The first call installs a handler if STRATOSTREAM_LOG_LEVEL is set and
    setup_logging has not run yet.
    """
    if not _configured:
        env_level = os.getenv("STRATOSTREAM_LOG_LEVEL")
        if env_level:
            setup_logging(
                level=env_level,
                json_output=os.getenv("STRATOSTREAM_LOG_FORMAT", "json").lower() == "json",
            )
    return StructuredLogger(logging.getLogger(name))


class TimedOperation:
    """
    Log how long a block took.

        with TimedOperation("create_message", logger, model=body["model"]):
            response = client.create_message(body)

    Success is logged at ``log_level`` as "<operation> completed", failure
    at WARNING as "<operation> failed"; both carry ``duration_ms``.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[StructuredLogger] = None,
        log_level: int = logging.DEBUG,
        **fields: Any
    ):
        self.operation = operation
        self.logger = logger or get_logger(f"{PACKAGE_LOGGER}.timing")
        self.log_level = log_level
        self.fields = fields
        self.duration_ms: Optional[float] = None
        self._started = 0.0

    def __enter__(self) -> "TimedOperation":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = round((time.perf_counter() - self._started) * 1000, 2)
        fields = {"operation": self.operation, "duration_ms": self.duration_ms, **self.fields}

        if exc_type is None:
            self.logger.log(self.log_level, f"{self.operation} completed", **fields)
        else:
            self.logger.warning(f"{self.operation} failed", error=str(exc_val), **fields)

    async def __aenter__(self) -> "TimedOperation":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)
