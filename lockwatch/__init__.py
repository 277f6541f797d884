"""
lockwatch

Keeps a Packrat project's lockfile and private library in step with the
client's view: tracks resolved/observed/computed hashes, schedules
coalesced auto-snapshots and tells the client when to refresh.
"""

from .types import Artifact, HashTier, PackratAction
from .config import LockwatchConfig
from .errors import LockwatchError, ArtifactReadError, ToolError, ConfigError
from .context import PackratContext, PackratOptions, packrat_context, packrat_options

from .state import (
    StateStore,
    VolatileStore,
    SqliteStore,
    HashStore,
)

from .engine import (
    HashComputer,
    ActionTracker,
    AutoSnapshotScheduler,
    AutoSnapshotJob,
    ReconciliationEngine,
    FileMonitor,
    FileChangeEvent,
    FileChangeKind,
    ReconciliationService,
)

from .rpc import ClientEventKind, ClientNotifier
from .tool import DependencyTool, RscriptTool
from .logs import TraceLogger

__version__ = "0.1.0"

__all__ = [
    # Types
    'Artifact',
    'HashTier',
    'PackratAction',
    # Config and errors
    'LockwatchConfig',
    'LockwatchError',
    'ArtifactReadError',
    'ToolError',
    'ConfigError',
    # Context
    'PackratContext',
    'PackratOptions',
    'packrat_context',
    'packrat_options',
    # State
    'StateStore',
    'VolatileStore',
    'SqliteStore',
    'HashStore',
    # Engine
    'HashComputer',
    'ActionTracker',
    'AutoSnapshotScheduler',
    'AutoSnapshotJob',
    'ReconciliationEngine',
    'FileMonitor',
    'FileChangeEvent',
    'FileChangeKind',
    'ReconciliationService',
    # Client surface
    'ClientEventKind',
    'ClientNotifier',
    'DependencyTool',
    'RscriptTool',
    'TraceLogger',
]
