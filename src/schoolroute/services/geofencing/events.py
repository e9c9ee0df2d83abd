"""Stop transition notifications and the sinks that deliver them."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol, Sequence

logger = logging.getLogger(__name__)


class StopEventType(str, Enum):
    APPROACHING = "stop.approaching"
    ARRIVED = "stop.arrived"


@dataclass(frozen=True, slots=True)
class StopEvent:
    type: StopEventType
    route_instance_id: str
    stop_id: str
    student_id: str
    distance_m: float
    occurred_at: datetime


class EventSink(Protocol):
    def publish(self, event: StopEvent) -> None:
        ...


class LoggingEventSink:
    """Default sink: records events in the application log only."""

    def publish(self, event: StopEvent) -> None:
        logger.info(
            f"{event.type.value}: route={event.route_instance_id} stop={event.stop_id} "
            f"student={event.student_id} distance={event.distance_m:.1f}m"
        )


class CollectingEventSink:
    """Keeps every published event in memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[StopEvent] = []

    def publish(self, event: StopEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type: StopEventType) -> list[StopEvent]:
        with self._lock:
            return [event for event in self.events if event.type is event_type]


class ThreadedEventSink:
    """Hands events to subscriber callbacks on a worker pool.

    ``publish`` returns immediately; a failing subscriber is logged and never
    reaches the geofence evaluation that raised the event.
    """

    def __init__(
        self,
        subscribers: Sequence[Callable[[StopEvent], None]] = (),
        *,
        max_workers: int = 4,
    ) -> None:
        self._subscribers = list(subscribers)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="stop-events")

    def subscribe(self, callback: Callable[[StopEvent], None]) -> None:
        self._subscribers.append(callback)

    def publish(self, event: StopEvent) -> None:
        for callback in self._subscribers:
            self._executor.submit(self._deliver, callback, event)

    @staticmethod
    def _deliver(callback: Callable[[StopEvent], None], event: StopEvent) -> None:
        try:
            callback(event)
        except Exception:
            logger.exception(f"Subscriber failed for {event.type.value} on stop {event.stop_id}")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def publish_safely(sink: EventSink, event: StopEvent) -> None:
    """Publish without letting a sink failure escape into the caller."""
    try:
        sink.publish(event)
    except Exception:
        logger.exception(f"Event sink rejected {event.type.value} for stop {event.stop_id}")
