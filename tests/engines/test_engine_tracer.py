"""
Tests for the RECORDS_ENGINE_TRACE decorator.
"""

import pytest

from records_engines.tracer import compute_input_fingerprint, traced_engine


@traced_engine("sample", "2.1", fingerprint_fields=("payload",))
def _sample_engine(payload, factor=1):
    if factor == 0:
        raise ValueError("factor must be non-zero")
    return payload


def _traces(captured_logs):
    return [r for r in captured_logs() if r["message"] == "RECORDS_ENGINE_TRACE"]


class TestTracedEngine:

    def test_trace_emitted(self, captured_logs):
        assert _sample_engine({"a": 1}) == {"a": 1}
        trace = _traces(captured_logs)[-1]
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["outcome"] == "ok"

    def test_error_propagates_and_is_traced(self, captured_logs):
        with pytest.raises(ValueError):
            _sample_engine({}, factor=0)
        assert _traces(captured_logs)[-1]["outcome"] == "error"

    def test_positional_and_keyword_fingerprints_match(self, captured_logs):
        _sample_engine({"b": 2, "a": 1})
        _sample_engine(payload={"a": 1, "b": 2})
        first, second = _traces(captured_logs)[-2:]
        assert first["input_fingerprint"] == second["input_fingerprint"]


class TestFingerprint:

    def test_key_order_irrelevant(self):
        assert compute_input_fingerprint(("x",), {"x": {"a": 1, "b": 2}}) == (
            compute_input_fingerprint(("x",), {"x": {"b": 2, "a": 1}})
        )

    def test_set_order_irrelevant(self):
        assert compute_input_fingerprint(("x",), {"x": frozenset({"p", "q"})}) == (
            compute_input_fingerprint(("x",), {"x": frozenset({"q", "p"})})
        )

    def test_missing_argument_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None}
        )

    def test_different_inputs_differ(self):
        assert compute_input_fingerprint(("x",), {"x": 1}) != compute_input_fingerprint(
            ("x",), {"x": 2}
        )
