"""Shared enums for artifacts, hash tiers and Packrat actions."""

from enum import Enum


class Artifact(str, Enum):
    """Filesystem entity whose content is tracked by hash."""
    LOCKFILE = "lockfile"  # packrat/packrat.lock
    LIBRARY = "library"    # packrat/lib, summarized by DESCRIPTION files


class HashTier(str, Enum):
    """Which view of an artifact a hash describes.

    COMPUTED != OBSERVED: the client shows stale state and should refresh.
    OBSERVED != RESOLVED: content changed since the last snapshot/restore,
    so a corrective action is owed.
    COMPUTED == RESOLVED: up to date, nothing to do.
    """
    RESOLVED = "resolved"  # last state known consistent (stored)
    OBSERVED = "observed"  # last state shown to the client (stored)
    COMPUTED = "computed"  # current on-disk state (never stored)


class PackratAction(str, Enum):
    """Actions Packrat reports through its start/stop hook."""
    NONE = "none"
    SNAPSHOT = "snapshot"
    RESTORE = "restore"
    CLEAN = "clean"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str) -> "PackratAction":
        """Map a hook action name to an action; unrecognized names are UNKNOWN."""
        for action in (cls.SNAPSHOT, cls.RESTORE, cls.CLEAN):
            if action.value == name:
                return action
        return cls.UNKNOWN
