"""
Relay Events
============
Fire-and-forget reporting of attempts, retries, breaker transitions,
rate-limit decisions and pipeline outcomes.
"""

from typing import Any, Optional

import structlog

from .metrics import record_event


class RelayEvents:
    """
    Event sink shared by the resilience components and the orchestrator.

    Each event is written to the structured log and folded into the
    Prometheus collectors. Reporting problems never reach the caller.
    """

    def __init__(self, logger: Optional[Any] = None, record_metrics: bool = True):
        self._logger = logger or structlog.get_logger("relay_core.events")
        self.record_metrics = record_metrics

    def emit(self, event: str, level: str = "info", **fields: Any) -> None:
        try:
            getattr(self._logger, level)(event, **fields)
            if self.record_metrics:
                record_event(event, fields)
        except Exception:  # noqa: BLE001
            # logging failures must not alter the pipeline outcome
            pass
