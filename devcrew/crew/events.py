"""Event types and observer bus for progress and escalation notifications."""

import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..logger import get_logger

_log = get_logger(__name__)


class EventType(Enum):
    TEAM_STARTED = "team_started"            # coordinator → observers
    TEAM_FINISHED = "team_finished"
    PROJECT_STARTED = "project_started"
    PROJECT_FINISHED = "project_finished"
    TASK_PLANNED = "task_planned"            # team → observers (breakdown ready)
    TASK_STARTED = "task_started"
    TASK_FINISHED = "task_finished"
    TASK_RETRY = "task_retry"                # decision collaborator asked for a retry
    TASK_ESCALATED = "task_escalated"        # team gave up on a parent task
    FIX_TASK_CREATED = "fix_task_created"    # verification failure → new dev task
    ESCALATION = "escalation"                # needs a human


@dataclass
class CrewEvent:
    type: EventType
    source: str               # team name or "coordinator"
    message: str = ""
    subject: Any = None       # Task or Project the event is about
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


Listener = Callable[[CrewEvent], None]

# Maximum number of events kept in history (ring buffer)
_MAX_HISTORY = 200


class EventBus:
    """Fire-and-forget observer list.

    Publishing never blocks on, or changes behavior because of, listeners:
    a listener that raises is logged and skipped.
    """

    def __init__(self, max_history: int = _MAX_HISTORY):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self._history: deque = deque(maxlen=max_history)

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def on_escalation(self, callback: Callable[[str, Any], None]) -> Listener:
        """Register a ``(reason, task_or_project)`` callback for escalations."""
        def _listener(event: CrewEvent) -> None:
            if event.type is EventType.ESCALATION:
                callback(event.message, event.subject)
        self.subscribe(_listener)
        return _listener

    def publish(self, event: CrewEvent) -> None:
        with self._lock:
            self._history.append(event)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                _log.warning("Event listener failed on %s: %s", event.type.value, e)

    def emit(self, type: EventType, source: str, message: str = "",
             subject: Any = None, **metadata) -> CrewEvent:
        event = CrewEvent(type=type, source=source, message=message,
                          subject=subject, metadata=metadata)
        self.publish(event)
        return event

    def get_history(self, type: Optional[EventType] = None) -> List[CrewEvent]:
        """Return a snapshot of recent events, optionally of one type."""
        with self._lock:
            events = list(self._history)
        if type is None:
            return events
        return [e for e in events if e.type is type]
