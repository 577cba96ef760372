"""
Structured JSON logging for the cold-storage core.

Every logger lives under the ``coldstore_kernel`` namespace. Records are
rendered as one JSON object per line carrying:

- the basics: ``ts`` (UTC, ISO 8601), ``level``, ``logger``, ``message``
- whatever is currently bound in :class:`LogContext` (delivery, session,
  actor and so on)
- any ``extra=`` fields passed at the call site
- for exceptions, ``exc_type`` / ``exc_message`` / ``exc_code`` plus one
  ``exc_<attr>`` per public attribute of a :class:`ColdStoreError`

Decimals are written as strings so quantities never pick up float noise.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, TextIO
from uuid import UUID

LOGGER_ROOT = "coldstore_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "session_id",
    "delivery_id",
    "actor_id",
    "trace_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_bound: ContextVar[Mapping[str, str]] = ContextVar("coldstore_log_context", default=_EMPTY)


def _merged(fields: Mapping[str, Any]) -> Mapping[str, str]:
    current = dict(_bound.get())
    for name, value in fields.items():
        if name in CONTEXT_FIELDS and value is not None:
            current[name] = str(value)
    return MappingProxyType(current)


class LogContext:
    """Per-task log fields, safe across threads and asyncio tasks.

    Only the names in ``CONTEXT_FIELDS`` are carried; ``bind`` silently
    drops anything else so callers can pass through loosely typed kwargs.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
        _bound.set(_merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_bound.get())

    @staticmethod
    def clear() -> None:
        _bound.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Bind fields for the duration of a ``with`` block."""
        token = _bound.set(_merged(fields))
        try:
            yield
        finally:
            _bound.reset(token)


# Attributes every LogRecord has; anything else on a record came from extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _jsonable(value: Any) -> Any:
    match value:
        case Decimal() | UUID():
            return str(value)
        case datetime() | date():
            return value.isoformat()
        case Enum():
            return value.value
        case set() | frozenset():
            return sorted(_jsonable(v) for v in value)
        case _:
            return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for attr, value in vars(exc).items():
        if not attr.startswith("_") and attr != "code":
            fields[f"exc_{attr}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_bound.get(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_ROOT}.{name}")


_state_lock = threading.Lock()
_installed: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``coldstore_kernel`` logger.

    Only the first call has an effect; later calls are no-ops until
    :func:`reset_logging`. The namespace stops propagating to the root
    logger so application-wide handlers do not print every line twice.
    """
    global _installed
    with _state_lock:
        if _installed is not None:
            return
        _installed = handler or logging.StreamHandler(stream or sys.stderr)

    _installed.setFormatter(StructuredFormatter())
    root = logging.getLogger(LOGGER_ROOT)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(_installed)


def reset_logging() -> None:
    """Detach handlers and restore propagation (used by tests)."""
    global _installed
    with _state_lock:
        _installed = None
    root = logging.getLogger(LOGGER_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
