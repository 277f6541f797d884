"""Persisted observed/resolved hashes per artifact."""

import logging
from typing import Optional

from ..types import Artifact, HashTier
from .base import StateStore


logger = logging.getLogger(__name__)

HASH_NAMESPACE = "packrat"


def key_of(artifact: Artifact, tier: HashTier) -> str:
    """Storage key for an artifact/tier pair, e.g. ``lockfileObserved``."""
    if tier == HashTier.COMPUTED:
        raise ValueError("Computed hashes are never stored")
    return f"{artifact.value}{tier.value.capitalize()}"


class HashStore:
    """Last observed and resolved hash of each artifact.

    Absence is a valid state meaning "never evaluated" and reads back as
    the empty string. Writes are suppressed when the value is unchanged,
    so the audit log only shows real transitions.
    """

    def __init__(self, store: StateStore) -> None:
        self.store = store

    def get(self, artifact: Artifact, tier: HashTier) -> str:
        value = self.store.get(HASH_NAMESPACE, key_of(artifact, tier))
        return value if isinstance(value, str) else ""

    def put(
        self,
        artifact: Artifact,
        tier: HashTier,
        value: str,
        trigger: Optional[str] = None
    ) -> bool:
        """Persist ``value`` if it differs from the stored hash.

        Returns:
            True if a write happened
        """
        key = key_of(artifact, tier)
        old_value = self.get(artifact, tier)
        if old_value == value:
            return False

        logger.debug(f"updating {key} ({old_value} -> {value})")
        self.store.put(HASH_NAMESPACE, key, value, trigger=trigger)
        return True
