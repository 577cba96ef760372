"""
coldstore_engines.tracer -- ``@traced_engine`` decorator.

Each call of a decorated engine logs one ``COLDSTORE_ENGINE_TRACE`` record
with the engine name and version, how long it took, whether it returned or
raised, and a short fingerprint of the arguments named in
``fingerprint_fields``. Two calls with equal fingerprinted arguments always
share a fingerprint, whether the arguments were passed by position or by
keyword, so a trace can be matched to a replay of the same request.

The decorator only reads arguments; it never changes what the engine sees or
returns.
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import json
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from coldstore_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

TRACE_MESSAGE = "COLDSTORE_ENGINE_TRACE"
FINGERPRINT_LENGTH = 16

F = TypeVar("F", bound=Callable[..., Any])


def _canonical(value: Any) -> Any:
    """Reduce ``value`` to JSON-compatible data with a stable ordering."""
    match value:
        case None | bool() | str():
            return value
        case Enum():
            return _canonical(value.value)
        case int() | float() | Decimal():
            return str(value)
        case Mapping():
            return {str(k): _canonical(v) for k, v in value.items()}
        case list() | tuple():
            return [_canonical(v) for v in value]
        case set() | frozenset():
            return sorted((_canonical(v) for v in value), key=repr)
        case _ if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return {
                f.name: _canonical(getattr(value, f.name))
                for f in dataclasses.fields(value)
            }
        case _:
            return repr(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16 hex chars of SHA-256 over the named arguments; absent ones count as None."""
    document = [[name, _canonical(arguments.get(name))] for name in fingerprint_fields]
    encoded = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                try:
                    bound = signature.bind(*args, **kwargs)
                except TypeError:
                    arguments: Mapping[str, Any] = kwargs
                else:
                    bound.apply_defaults()
                    arguments = bound.arguments
                fingerprint = compute_input_fingerprint(fingerprint_fields, arguments)

            outcome = "error"
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
                outcome = "ok"
                return result
            finally:
                _logger.info(TRACE_MESSAGE, extra={
                    "trace_type": TRACE_MESSAGE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                    "outcome": outcome,
                    "function": func.__qualname__,
                })

        return wrapper  # type: ignore[return-value]

    return decorator
