"""Tests for cycle correlation helpers."""

from __future__ import annotations

import logging

from feedwatch.monitoring.tracing import cycle_scope, get_cycle_id, trace_span


def test_cycle_scope_binds_and_resets():
    assert get_cycle_id() is None

    with cycle_scope("abc123") as cycle_id:
        assert cycle_id == "abc123"
        assert get_cycle_id() == "abc123"

    assert get_cycle_id() is None


def test_cycle_scope_generates_identifier():
    with cycle_scope() as cycle_id:
        assert len(cycle_id) == 12
        assert get_cycle_id() == cycle_id


def test_nested_scopes_restore_outer_id():
    with cycle_scope("outer"):
        with cycle_scope("inner"):
            assert get_cycle_id() == "inner"
        assert get_cycle_id() == "outer"


def test_trace_span_records_duration(caplog):
    with caplog.at_level(logging.DEBUG, logger="feedwatch.monitoring.tracing"):
        with cycle_scope("cycle-1"):
            with trace_span("fetch", upstream="weather") as span:
                span.metadata["attempts"] = 2

    assert span.cycle_id == "cycle-1"
    assert span.duration_ms is not None and span.duration_ms >= 0
    assert span.metadata == {"upstream": "weather", "attempts": 2}
    assert "Stage fetch completed" in caplog.text


def test_trace_span_finishes_on_error():
    try:
        with trace_span("persist") as span:
            raise RuntimeError("store down")
    except RuntimeError:
        pass

    assert span.duration_ms is not None
