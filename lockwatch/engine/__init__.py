"""lockwatch engine: hashing, reconciliation and auto-snapshot scheduling."""

from .hashing import HashComputer, crc32_hex
from .actions import ActionTracker
from .auto_snapshot import AutoSnapshotScheduler, AutoSnapshotJob
from .reconcile import ReconciliationEngine
from .fs_watcher import FileMonitor, FileChangeEvent, FileChangeKind
from .service import ReconciliationService

__all__ = [
    "HashComputer",
    "crc32_hex",
    "ActionTracker",
    "AutoSnapshotScheduler",
    "AutoSnapshotJob",
    "ReconciliationEngine",
    "FileMonitor",
    "FileChangeEvent",
    "FileChangeKind",
    "ReconciliationService",
]
