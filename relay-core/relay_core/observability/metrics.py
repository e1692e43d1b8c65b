"""
Prometheus Metrics Definitions
==============================
Metrics for downstream calls, circuit breakers, rate limiting and the relay
pipeline. All collectors live on a dedicated registry so the relay can be
embedded next to other instrumented code.
"""

from typing import Any, Dict

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

RELAY_REGISTRY = CollectorRegistry()

CALL_ATTEMPTS = Counter(
    name="relay_call_attempts_total",
    documentation="Attempts made against downstream dependencies",
    labelnames=["dependency", "outcome"],
    registry=RELAY_REGISTRY,
)

CALL_LATENCY = Histogram(
    name="relay_call_attempt_duration_seconds",
    documentation="Duration of single downstream attempts",
    labelnames=["dependency"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=RELAY_REGISTRY,
)

CALL_RETRIES = Counter(
    name="relay_call_retries_total",
    documentation="Retries scheduled by the call wrapper",
    labelnames=["dependency"],
    registry=RELAY_REGISTRY,
)

CIRCUIT_BREAKER_STATE = Gauge(
    name="relay_circuit_breaker_state",
    documentation="Circuit breaker state (0=closed, 1=half_open, 2=open)",
    labelnames=["breaker"],
    registry=RELAY_REGISTRY,
)

RATE_LIMIT_DECISIONS = Counter(
    name="relay_rate_limit_decisions_total",
    documentation="Rate limiter decisions",
    labelnames=["result", "backend"],
    registry=RELAY_REGISTRY,
)

PIPELINE_OUTCOMES = Counter(
    name="relay_pipeline_outcomes_total",
    documentation="Final states reached by inbound events and messages",
    labelnames=["scope", "state", "reason"],
    registry=RELAY_REGISTRY,
)

CHUNKS_SENT = Counter(
    name="relay_chunks_sent_total",
    documentation="Outbound message chunks delivered",
    registry=RELAY_REGISTRY,
)

_STATE_VALUES = {"closed": 0, "half_open": 1, "open": 2}


def record_event(event: str, fields: Dict[str, Any]) -> None:
    """Update the collectors that track a given relay event."""
    if event == "call_attempt_finished":
        dependency = fields.get("dependency", "unknown")
        CALL_ATTEMPTS.labels(dependency=dependency, outcome=fields.get("outcome", "unknown")).inc()
        if "duration_ms" in fields:
            CALL_LATENCY.labels(dependency=dependency).observe(fields["duration_ms"] / 1000.0)
    elif event == "call_retry_scheduled":
        CALL_RETRIES.labels(dependency=fields.get("dependency", "unknown")).inc()
    elif event == "breaker_state_changed":
        CIRCUIT_BREAKER_STATE.labels(breaker=fields.get("breaker", "unknown")).set(
            _STATE_VALUES.get(fields.get("to_state", ""), -1)
        )
    elif event == "rate_limit_decision":
        RATE_LIMIT_DECISIONS.labels(
            result=fields.get("result", "unknown"),
            backend=fields.get("backend", "unknown"),
        ).inc()
    elif event in ("event_finished", "message_finished"):
        PIPELINE_OUTCOMES.labels(
            scope="event" if event == "event_finished" else "message",
            state=fields.get("state", "unknown"),
            reason=fields.get("reason") or "none",
        ).inc()
    elif event == "chunk_sent":
        CHUNKS_SENT.inc()


def get_metrics_text() -> bytes:
    """Render the relay registry in Prometheus text format."""
    return generate_latest(RELAY_REGISTRY)


METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST
