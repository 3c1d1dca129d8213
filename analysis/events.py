"""
Event Model for the Resource Allocation & Deadlock Engine.

Defines event types for recording the history of a simulation session.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class EventType(Enum):
    """Types of events in a session."""
    CONFIGURED = "configured"
    GRANTED = "granted"
    DENIED = "denied"
    BATCH_GRANTED = "batch_granted"
    BATCH_DENIED = "batch_denied"
    RELEASED = "released"
    REQUEST_SET = "request_set"
    SAFETY_CHECKED = "safety_checked"
    DEADLOCK_DETECTED = "deadlock_detected"
    NO_DEADLOCK = "no_deadlock"
    TERMINATED = "terminated"
    RESET = "reset"


@dataclass
class SimulationEvent:
    """
    Represents a single event in the session history.

    Attributes:
        step: Operation step when event occurred
        event_type: Type of event
        process_id: PID involved in event (None for system-wide events)
        vector: Resource vector involved (if applicable)
        reason: Denial reason (if applicable)
        message: Human-readable description
    """
    step: int
    event_type: EventType
    process_id: Optional[int] = None
    vector: Optional[Tuple[int, ...]] = None
    reason: str = ""
    message: str = ""

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"Step {self.step}:"
        if self.process_id is not None:
            base += f" P{self.process_id}"
        vector = list(self.vector) if self.vector is not None else []

        if self.event_type == EventType.GRANTED:
            return f"{base} requests {vector} - GRANTED ({self.message})"
        elif self.event_type == EventType.DENIED:
            return f"{base} requests {vector} - DENIED {self.reason} ({self.message})"
        elif self.event_type == EventType.RELEASED:
            return f"{base} releases {vector}"
        elif self.event_type == EventType.REQUEST_SET:
            return f"{base} waits for {vector}"
        elif self.event_type == EventType.TERMINATED:
            return f"{base} - TERMINATED (released {vector})"
        else:
            return f"{base} {self.event_type.value}: {self.message}"


@dataclass
class EventLog:
    """Collection of session events."""
    events: list = None

    def __post_init__(self):
        if self.events is None:
            self.events = []

    def __len__(self) -> int:
        return len(self.events)

    def add(self, event: SimulationEvent) -> None:
        """Add an event to the log."""
        self.events.append(event)

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]

    def get_events_by_process(self, pid: int) -> list:
        """Get all events involving a specific process."""
        return [e for e in self.events if e.process_id == pid]

    def get_events_by_step(self, step: int) -> list:
        """Get all events from a specific step."""
        return [e for e in self.events if e.step == step]

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.events)
