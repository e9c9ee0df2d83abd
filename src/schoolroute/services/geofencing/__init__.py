"""Geofence evaluation and stop transition events."""

from .events import CollectingEventSink, EventSink, LoggingEventSink, StopEvent, StopEventType, ThreadedEventSink
from .monitor import GeofenceMonitor, GeofenceResult, NextStop

__all__ = [
    "CollectingEventSink",
    "EventSink",
    "GeofenceMonitor",
    "GeofenceResult",
    "LoggingEventSink",
    "NextStop",
    "StopEvent",
    "StopEventType",
    "ThreadedEventSink",
]
