"""Client notifications for lockwatch.

The engine tells the UI client to refresh through a fire-and-forget
``emit(kind)``. Events carry no payload beyond their kind; they are held in
a bounded buffer that RPC clients poll with a cursor, and are also pushed to
any registered listeners (the stdio transport writes them out as JSON-RPC
notifications).
"""

from collections import deque
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, List
import logging


logger = logging.getLogger(__name__)


class ClientEventKind(str, Enum):
    """Events the client understands."""
    INSTALLED_PACKAGES_CHANGED = "installed_packages_changed"


class EventBuffer:
    """Buffer for server-to-client events, dropping the oldest when full.

    Mutated only from the service's event loop thread, so no lock is taken.
    """

    def __init__(self, max_size: int = 1000):
        self._buffer: Deque[Dict[str, Any]] = deque(maxlen=max_size)
        self._event_id = 0

    def push(self, event_kind: str) -> int:
        """Add event to buffer. Returns event ID."""
        self._event_id += 1
        self._buffer.append({
            "id": self._event_id,
            "type": event_kind,
            "timestamp": datetime.now().isoformat(),
        })
        return self._event_id

    def get_since(self, cursor: int) -> List[Dict[str, Any]]:
        """Get all events since cursor ID."""
        return [e for e in self._buffer if e["id"] > cursor]

    @property
    def last_event_id(self) -> int:
        return self._event_id


class ClientNotifier:
    """Emits client refresh events."""

    def __init__(self, max_buffer: int = 1000):
        self.buffer = EventBuffer(max_size=max_buffer)
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []

    def add_listener(self, listener: Callable[[Dict[str, Any]], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[Dict[str, Any]], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event_kind: ClientEventKind) -> int:
        """Queue an event for the client. Never raises."""
        event_id = self.buffer.push(event_kind.value)
        event = {"id": event_id, "type": event_kind.value}
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Client event listener failed: {e}")
        return event_id

    def events_since(self, cursor: int) -> List[Dict[str, Any]]:
        return self.buffer.get_since(cursor)

    @property
    def emitted(self) -> int:
        """Total number of events emitted so far."""
        return self.buffer.last_event_id
