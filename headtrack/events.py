"""
Targeting events.

State transitions (activation, lock acquisition, lock release, trigger
assist) are published as structured events instead of being printed, so the
core stays free of presentation I/O. Callbacks can record, display or
forward them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# EVENT TYPES
# =============================================================================

class TargetingEventType(Enum):
    """Types of events emitted by the targeting pipeline."""
    # Controller events
    ACTIVATED = auto()
    DEACTIVATED = auto()

    # Lock events
    TARGET_LOCKED = auto()
    LOCK_RELEASED = auto()

    # Trigger assist
    FIRE_TRIGGERED = auto()


@dataclass
class TargetingEvent:
    """
    An event emitted by the targeting pipeline.

    Attributes:
        event_type: The type of event.
        timestamp_ms: Clock time when the event occurred.
        target_id: Entity ID of the target involved (if applicable).
        data: Additional event-specific data.
    """
    event_type: TargetingEventType
    timestamp_ms: float
    target_id: Optional[str] = None
    data: dict = field(default_factory=dict)

    def __str__(self) -> str:
        target_str = f" -> {self.target_id}" if self.target_id else ""
        return f"T+{self.timestamp_ms:.0f}ms {self.event_type.name}{target_str}"


EventCallback = Callable[[TargetingEvent], None]


# =============================================================================
# EVENT BUS
# =============================================================================

class EventBus:
    """
    Fan-out of targeting events to registered callbacks.

    Keeps a bounded in-memory history of emitted events.
    """

    def __init__(self, history_limit: int = 1000) -> None:
        self.events: List[TargetingEvent] = []
        self.history_limit = max(0, history_limit)
        self._callbacks: List[EventCallback] = []

    def add_callback(self, callback: EventCallback) -> None:
        """
        Register a callback to be called for each event.

        Args:
            callback: Function that takes a TargetingEvent.
        """
        self._callbacks.append(callback)

    def remove_callback(self, callback: EventCallback) -> None:
        """Remove an event callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(
        self,
        event_type: TargetingEventType,
        timestamp_ms: float,
        target_id: Optional[str] = None,
        data: Optional[dict] = None
    ) -> TargetingEvent:
        """Record an event and notify callbacks."""
        event = TargetingEvent(
            event_type=event_type,
            timestamp_ms=timestamp_ms,
            target_id=target_id,
            data=data or {}
        )
        if self.history_limit:
            self.events.append(event)
            if len(self.events) > self.history_limit:
                del self.events[:len(self.events) - self.history_limit]

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Event callback failed for %s", event.event_type.name)

        return event

    def clear(self) -> None:
        self.events.clear()
