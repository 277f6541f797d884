"""Base state store protocol and transition records."""

from typing import Protocol, Optional, List
from dataclasses import dataclass
from datetime import datetime


@dataclass
class StateTransition:
    """Audit record of one persisted value change."""
    namespace: str
    key: str
    old_value: Optional[str]
    new_value: Optional[str]
    trigger: Optional[str] = None
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()


class StateStore(Protocol):
    """Protocol for project-scoped persistent key/value storage."""

    def get(self, namespace: str, key: str) -> Optional[str]:
        """Get value for key. Returns None if never set."""
        ...

    def put(self, namespace: str, key: str, value: str, trigger: Optional[str] = None) -> None:
        """Persist a value immediately."""
        ...

    def get_transitions(self, key: Optional[str] = None, limit: int = 100) -> List[StateTransition]:
        """Return recorded transitions, newest first."""
        ...
