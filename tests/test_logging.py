from __future__ import annotations

import structlog

from agentchat.infrastructure.observability.logging import MetricsCollector, add_request_context


def test_metrics_summary_combines_counters_and_latency():
    metrics = MetricsCollector()
    metrics.increment_counter("requests.issued")
    metrics.increment_counter("requests.issued", 2)
    metrics.record_latency("send_message", 10.0)
    metrics.record_latency("send_message", 30.0)

    summary = metrics.get_metrics_summary()

    assert summary["requests.issued"] == 3
    assert summary["latency.send_message"] == {"count": 2, "avg": 20.0, "max": 30.0}


def test_request_context_is_copied_from_contextvars():
    with structlog.contextvars.bound_contextvars(correlation_key="abc", session_id="s1"):
        event = add_request_context(None, "info", {"event": "x"})

    assert event == {"event": "x", "correlation_key": "abc", "session_id": "s1"}


def test_explicit_fields_win_over_bound_context():
    with structlog.contextvars.bound_contextvars(session_id="bound"):
        event = add_request_context(None, "info", {"event": "x", "session_id": "explicit"})

    assert event["session_id"] == "explicit"
    assert "correlation_key" not in event
