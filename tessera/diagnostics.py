"""
Diagnostics - observability and event tracking for service managers.
"""

import time
from typing import Any, Dict, List, Optional, Protocol
from enum import Enum
import dataclasses
import logging

logger = logging.getLogger("tessera.diagnostics")


class EventType(Enum):
    """Types of service manager events."""
    REGISTRATION = "registration"
    RESOLUTION_START = "resolution_start"
    RESOLUTION_SUCCESS = "resolution_success"
    RESOLUTION_FAILURE = "resolution_failure"
    CACHE_HIT = "cache_hit"
    CACHE_FORGET = "cache_forget"


@dataclasses.dataclass
class Event:
    """A diagnostic event."""
    type: EventType
    timestamp: float = dataclasses.field(default_factory=time.time)
    name: Optional[str] = None
    requested: Optional[str] = None
    producer: Optional[str] = None
    duration: Optional[float] = None
    error: Optional[BaseException] = None
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)


class DiagnosticListener(Protocol):
    """Interface for diagnostic listeners."""
    def on_event(self, event: Event) -> None:
        """Called when an event occurs."""
        ...


class LoggingListener:
    """Listener that writes events to the ``tessera.diagnostics`` logger."""

    def __init__(self, log_level: int = logging.DEBUG):
        self.log_level = log_level

    def on_event(self, event: Event) -> None:
        if event.type == EventType.REGISTRATION:
            logger.log(
                self.log_level,
                "Registered %s %s for name=%s",
                event.metadata.get("kind", "producer"), event.producer, event.name,
            )
        elif event.type == EventType.RESOLUTION_START:
            logger.log(self.log_level, "Resolving name=%s (requested=%s)...", event.name, event.requested)
        elif event.type == EventType.RESOLUTION_SUCCESS:
            logger.log(self.log_level, "Resolved name=%s in %.4fs", event.name, event.duration or 0.0)
        elif event.type == EventType.RESOLUTION_FAILURE:
            logger.error("Failed to resolve name=%s: %s", event.name, event.error)
        elif event.type == EventType.CACHE_HIT:
            logger.log(self.log_level, "Cache hit for name=%s", event.name)
        elif event.type == EventType.CACHE_FORGET:
            logger.log(self.log_level, "Forgot cached instance name=%s", event.name)


class RecordingListener:
    """Keeps every event in memory; handy in tests and the CLI."""

    def __init__(self):
        self.events: List[Event] = []

    def on_event(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[Event]:
        return [event for event in self.events if event.type == event_type]


class Diagnostics:
    """Coordinator for diagnostic listeners."""

    def __init__(self, listeners: Optional[List[DiagnosticListener]] = None):
        self._listeners: List[DiagnosticListener] = list(listeners or [])

    @property
    def enabled(self) -> bool:
        return bool(self._listeners)

    def add_listener(self, listener: DiagnosticListener) -> None:
        """Add a diagnostic listener."""
        self._listeners.append(listener)

    def remove_listener(self, listener: DiagnosticListener) -> None:
        self._listeners.remove(listener)

    def emit(self, event_type: EventType, **kwargs) -> None:
        """Emit an event to all listeners."""
        if not self._listeners:
            return
        event = Event(type=event_type, **kwargs)
        for listener in self._listeners:
            try:
                listener.on_event(event)
            except Exception as e:
                # A broken listener must not break resolution
                logger.error("Diagnostic listener error: %s", e)

    def measure(self, **kwargs) -> "_ResolutionMeasure":
        """Context manager timing one resolution; emits start and success/failure."""
        return _ResolutionMeasure(self, **kwargs)


class _ResolutionMeasure:
    __slots__ = ("diagnostics", "kwargs", "start_time")

    def __init__(self, diagnostics: Diagnostics, **kwargs):
        self.diagnostics = diagnostics
        self.kwargs = kwargs
        self.start_time = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.diagnostics.emit(EventType.RESOLUTION_START, **self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        if exc_type:
            self.diagnostics.emit(
                EventType.RESOLUTION_FAILURE,
                duration=duration,
                error=exc_val,
                **self.kwargs
            )
        else:
            self.diagnostics.emit(
                EventType.RESOLUTION_SUCCESS,
                duration=duration,
                **self.kwargs
            )
        return False
