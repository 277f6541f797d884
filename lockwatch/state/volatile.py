"""Volatile (in-memory) state store implementation."""

from typing import Dict, List, Optional, Tuple
from .base import StateTransition


class VolatileStore:
    """In-memory state store with a write counter.

    Holds the same data as SqliteStore but loses it on exit. Used for
    one-shot CLI queries and in tests, where ``writes`` shows whether a
    caller suppressed redundant puts.
    """

    def __init__(self) -> None:
        self._data: Dict[Tuple[str, str], str] = {}
        self._transitions: List[StateTransition] = []
        self._writes: int = 0

    def get(self, namespace: str, key: str) -> Optional[str]:
        """Get value for key from current state."""
        return self._data.get((namespace, key))

    def put(self, namespace: str, key: str, value: str, trigger: Optional[str] = None) -> None:
        """Store a value and record the transition."""
        old_value = self._data.get((namespace, key))
        self._data[(namespace, key)] = value
        self._writes += 1
        self._transitions.append(StateTransition(
            namespace=namespace,
            key=key,
            old_value=old_value,
            new_value=value,
            trigger=trigger,
        ))

    def get_transitions(self, key: Optional[str] = None, limit: int = 100) -> List[StateTransition]:
        """Get transitions newest first, optionally for one key."""
        matching = [t for t in reversed(self._transitions) if key is None or t.key == key]
        return matching[:limit]

    @property
    def writes(self) -> int:
        """Number of put() calls applied so far."""
        return self._writes

    def __len__(self) -> int:
        """Return number of keys in store."""
        return len(self._data)

    def close(self) -> None:
        pass
