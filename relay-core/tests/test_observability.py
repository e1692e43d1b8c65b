"""
Tests for Events, Metrics and Logging
=====================================
"""

import json
from unittest.mock import MagicMock

import structlog

from relay_core.observability import RelayEvents, get_metrics_text, record_event, setup_logging
from relay_core.observability.metrics import CIRCUIT_BREAKER_STATE, RELAY_REGISTRY


def _sample(name, labels):
    return RELAY_REGISTRY.get_sample_value(name, labels) or 0.0


class TestRecordEvent:
    """Tests for folding events into Prometheus collectors."""

    def test_call_attempts_counted(self):
        labels = {"dependency": "metrics-test", "outcome": "success"}
        before = _sample("relay_call_attempts_total", labels)

        record_event("call_attempt_finished", {"dependency": "metrics-test", "outcome": "success", "duration_ms": 12.5})

        assert _sample("relay_call_attempts_total", labels) == before + 1

    def test_breaker_state_gauge(self):
        record_event("breaker_state_changed", {"breaker": "gauge-test", "to_state": "open"})

        assert CIRCUIT_BREAKER_STATE.labels(breaker="gauge-test")._value.get() == 2

    def test_pipeline_outcome_without_reason(self):
        labels = {"scope": "event", "state": "done", "reason": "none"}
        before = _sample("relay_pipeline_outcomes_total", labels)

        record_event("event_finished", {"state": "done", "reason": None})

        assert _sample("relay_pipeline_outcomes_total", labels) == before + 1

    def test_unknown_events_are_ignored(self):
        record_event("something_else", {})

    def test_metrics_text(self):
        assert b"relay_call_attempts_total" in get_metrics_text()


class TestRelayEvents:
    """Tests for the fire-and-forget event sink."""

    def test_logs_with_level_and_fields(self):
        logger = MagicMock()
        sink = RelayEvents(logger=logger, record_metrics=False)

        sink.emit("rate_limit_decision", level="warning", identity="1.2.3.4")

        logger.warning.assert_called_once_with("rate_limit_decision", identity="1.2.3.4")

    def test_swallows_logger_failures(self):
        logger = MagicMock()
        logger.info.side_effect = RuntimeError("sink down")

        RelayEvents(logger=logger).emit("event_finished", state="done")


class TestSetupLogging:
    def test_json_output_binds_service(self, capsys):
        setup_logging("relay-test", level="INFO", json_output=True)
        try:
            structlog.get_logger("test").info("hello_world", answer=42)
            line = capsys.readouterr().out.strip().splitlines()[-1]
        finally:
            structlog.contextvars.clear_contextvars()
            structlog.reset_defaults()

        record = json.loads(line)
        assert record["event"] == "hello_world"
        assert record["answer"] == 42
        assert record["service"] == "relay-test"
        assert record["level"] == "info"
