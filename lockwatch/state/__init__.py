"""State storage for lockwatch."""

from .base import StateStore, StateTransition
from .volatile import VolatileStore
from .sqlite import SqliteStore
from .hash_store import HashStore, HASH_NAMESPACE, key_of

__all__ = [
    # Base protocol
    "StateStore",
    "StateTransition",
    # Stores
    "VolatileStore",
    "SqliteStore",
    # Hash tiers
    "HashStore",
    "HASH_NAMESPACE",
    "key_of",
]
