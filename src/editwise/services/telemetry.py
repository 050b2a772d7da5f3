"""Telemetry service forwarding events to the host's sender.

Event names may arrive wrapped with a destination prefix
(``"copilot-nes/provideInlineEdit"``); the service strips the prefix before
forwarding and drops absent property/measurement values.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Mapping

from .capabilities import TelemetrySender

__all__ = [
    "InMemoryTelemetrySender",
    "RecordedTelemetryEvent",
    "TelemetryService",
    "normalize_event_name",
]

LOGGER = logging.getLogger(__name__)

_PREFIX_PATTERN = re.compile(r"^[^/]+/(.*)$")


def normalize_event_name(event_name: str) -> str:
    """Strip a ``destination/`` prefix from ``event_name``."""

    match = _PREFIX_PATTERN.match(event_name)
    return match.group(1) if match else event_name


@dataclass(slots=True)
class RecordedTelemetryEvent:
    """A telemetry event captured by :class:`InMemoryTelemetrySender`."""

    name: str
    properties: dict[str, str] = field(default_factory=dict)
    measurements: dict[str, float] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class InMemoryTelemetrySender:
    """Thread-safe in-memory sender for testing and inspection.

    Stores events in a ring buffer with configurable capacity.
    """

    def __init__(self, capacity: int = 200) -> None:
        self._capacity = max(10, capacity)
        self._events: list[RecordedTelemetryEvent] = []
        self._lock = Lock()

    def send_telemetry_event(
        self,
        event_name: str,
        properties: Mapping[str, str | None] | None = None,
        measurements: Mapping[str, float | None] | None = None,
    ) -> None:
        event = RecordedTelemetryEvent(
            name=event_name,
            properties={k: v for k, v in (properties or {}).items() if v is not None},
            measurements={k: v for k, v in (measurements or {}).items() if v is not None},
        )
        with self._lock:
            self._events.append(event)
            while len(self._events) > self._capacity:
                self._events.pop(0)

    def events(self) -> list[RecordedTelemetryEvent]:
        with self._lock:
            return list(self._events)

    def events_by_name(self, name: str) -> list[RecordedTelemetryEvent]:
        with self._lock:
            return [event for event in self._events if event.name == name]

    def clear(self) -> int:
        with self._lock:
            count = len(self._events)
            self._events.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __bool__(self) -> bool:
        return True


class TelemetryService:
    """Sends telemetry events through the host supplied sender."""

    def __init__(self, sender: TelemetrySender, *, enabled: bool = True) -> None:
        self._sender = sender
        self._enabled = enabled
        self._sent = 0
        self._lock = Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def sent_count(self) -> int:
        with self._lock:
            return self._sent

    def send_event(
        self,
        event_name: str,
        properties: Mapping[str, str | None] | None = None,
        measurements: Mapping[str, float | None] | None = None,
    ) -> None:
        if not self._enabled:
            LOGGER.debug("Telemetry disabled; dropping %s", event_name)
            return
        name = normalize_event_name(event_name)
        cleaned_properties = {k: v for k, v in (properties or {}).items() if v is not None}
        cleaned_measurements = {k: v for k, v in (measurements or {}).items() if v is not None}
        self._sender.send_telemetry_event(name, cleaned_properties, cleaned_measurements)
        with self._lock:
            self._sent += 1
        LOGGER.debug("Sent telemetry event %s", name)
