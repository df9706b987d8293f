"""Event emitters for the topology build pass."""

import logging
from abc import ABC, abstractmethod
from typing import Iterable

from topology_engine.core.events_model import TopologyEvent

logger = logging.getLogger(__name__)


ALLOWED_EVENTS = {
    "build.started",
    "step.completed",
    "step.failed",
    "build.completed",
    "build.failed",
}


class EventEmitter(ABC):
    """Abstract event emitter."""

    @abstractmethod
    def emit(self, events: Iterable[TopologyEvent]) -> None:
        """Emit one or more events."""
        pass


class RecordingEventEmitter(EventEmitter):
    """Keeps events in memory and logs them."""

    def __init__(self):
        self.events = []

    def emit(self, events: Iterable[TopologyEvent]) -> None:
        for event in events:
            if event.event_type not in ALLOWED_EVENTS:
                raise ValueError(f"Invalid event type: {event.event_type}")
            if not event.build_id:
                raise ValueError("Event must have build_id")

            self.events.append(event)

            logger.info(f"[EVENT] {event.event_type} | build={event.build_id}")

    def event_types(self) -> list[str]:
        return [e.event_type for e in self.events]


class MultiEventEmitter:
    """Fan-out to multiple emitters."""

    def __init__(self, emitters: Iterable[EventEmitter]):
        self._emitters = list(emitters)

    def emit(self, events: Iterable[TopologyEvent]):
        """Emit to all emitters."""
        events = list(events)
        for emitter in self._emitters:
            emitter.emit(events)


class NullEventEmitter(EventEmitter):
    """No-op emitter (used when events are not needed)."""

    def emit(self, events: Iterable[TopologyEvent]) -> None:
        """Do nothing."""
        pass
