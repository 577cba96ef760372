"""Tests for the engine tracer decorator."""

import json
import logging
from io import StringIO

import pytest

from coldstore_engines.breakdown import BreakdownSelector, resolve_breakdown
from coldstore_engines.tracer import compute_input_fingerprint, traced_engine
from coldstore_kernel.logging_config import StructuredFormatter, configure_logging


@pytest.fixture
def trace_stream(clean_logging):
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    configure_logging(handler=handler)
    return stream


def _traces(stream: StringIO) -> list[dict]:
    records = [json.loads(line) for line in stream.getvalue().splitlines() if line]
    return [r for r in records if r["message"] == "COLDSTORE_ENGINE_TRACE"]


class TestFingerprint:

    def test_deterministic(self):
        args = {"sizes": ("Seed", "Goli"), "mode": "current"}
        assert compute_input_fingerprint(("sizes", "mode"), args) == \
            compute_input_fingerprint(("sizes", "mode"), dict(args))

    def test_sensitive_to_values(self):
        a = compute_input_fingerprint(("mode",), {"mode": "current"})
        b = compute_input_fingerprint(("mode",), {"mode": "initial"})
        assert a != b
        assert len(a) == 16

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(("x",), {"x": None})


class TestTracedEngine:

    def test_emits_trace(self, trace_stream):
        @traced_engine("sample", "2.0", fingerprint_fields=("value",))
        def double(value):
            return value * 2

        assert double(4) == 8
        (trace,) = _traces(trace_stream)
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.0"
        assert trace["input_fingerprint"] == compute_input_fingerprint(("value",), {"value": 4})
        assert trace["duration_ms"] >= 0
        assert trace["outcome"] == "ok"

    def test_positional_and_keyword_agree(self, trace_stream):
        @traced_engine("sample", "1.0", fingerprint_fields=("value",))
        def ident(value):
            return value

        ident(3)
        ident(value=3)
        first, second = _traces(trace_stream)
        assert first["input_fingerprint"] == second["input_fingerprint"]

    def test_engine_result_unchanged(self, trace_stream, split_lot):
        result = resolve_breakdown([split_lot], BreakdownSelector.grand_total())
        assert result.total == 54
        assert _traces(trace_stream)[0]["engine_name"] == "breakdown"

    def test_failure_is_traced_and_reraised(self, trace_stream):
        @traced_engine("sample", "1.0")
        def boom():
            raise ValueError("no stock")

        with pytest.raises(ValueError):
            boom()
        (trace,) = _traces(trace_stream)
        assert trace["outcome"] == "error"
        assert trace["input_fingerprint"] == ""

    def test_dataclass_arguments_fingerprint_by_value(self):
        a = compute_input_fingerprint(("selector",), {"selector": BreakdownSelector.cell("Jyoti", "Seed")})
        b = compute_input_fingerprint(("selector",), {"selector": BreakdownSelector.cell("Jyoti", "Seed")})
        c = compute_input_fingerprint(("selector",), {"selector": BreakdownSelector.cell("Jyoti", "Goli")})
        assert a == b != c
