"""
Shared fixtures for relay-core tests.
"""

from typing import Any, Dict, List, Tuple

import pytest

from relay_core.observability.events import RelayEvents


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingEvents(RelayEvents):
    """Event sink that keeps every emitted event for assertions."""

    def __init__(self):
        super().__init__(record_metrics=False)
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event: str, level: str = "info", **fields: Any) -> None:
        self.events.append((event, fields))

    def named(self, event: str) -> List[Dict[str, Any]]:
        return [fields for name, fields in self.events if name == event]


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that returns immediately."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    return RecordingEvents()


@pytest.fixture
def sleeper():
    return SleepRecorder()
