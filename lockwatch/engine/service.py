"""Per-project reconciliation service.

Owns every piece of mutable reconciliation state for one open project:
the hash store, the auto-snapshot slot and pending counter, the running
action and the re-entrancy flags. Hosts create one service per project and
feed it file events and Packrat action notifications from a single asyncio
loop.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from ..config import LockwatchConfig
from ..context import PackratContext, PackratOptions, packrat_context, packrat_options
from ..logs.trace import TraceEventType, TraceLogger
from ..rpc.notifications import ClientNotifier
from ..state.base import StateStore
from ..state.hash_store import HashStore
from ..state.sqlite import SqliteStore
from ..tool.base import DependencyTool
from ..tool.packrat import RscriptTool
from ..types import Artifact, HashTier, PackratAction
from .actions import ActionTracker, real_paths_equal
from .fs_watcher import FileChangeEvent, FileMonitor
from .hashing import HashComputer
from .reconcile import ReconciliationEngine


logger = logging.getLogger(__name__)


class ReconciliationService:
    """Reconciliation for one project."""

    def __init__(
        self,
        config: LockwatchConfig,
        store: StateStore,
        tool: DependencyTool,
        notifier: Optional[ClientNotifier] = None,
        tracer: Optional[TraceLogger] = None,
    ):
        self.config = config
        self.project_dir = config.project_dir
        self.store = store
        self.tool = tool
        self.notifier = notifier or ClientNotifier(max_buffer=config.event_buffer_size)
        self.tracer = tracer

        self.hashes = HashStore(store)
        self.computer = HashComputer(config.lockfile_path, config.library_path)
        self.engine = ReconciliationEngine(
            project_dir=self.project_dir,
            hashes=self.hashes,
            computer=self.computer,
            tool=tool,
            notifier=self.notifier,
            tracer=tracer,
        )
        self.actions = ActionTracker(self.project_dir)
        self.monitor = FileMonitor(
            config.lockfile_path,
            config.library_path,
            ignored_dirs=config.ignored_library_dirs,
        )
        self.monitor.set_on_change(self._on_artifact_changed)

    @classmethod
    def create(cls, config: LockwatchConfig) -> "ReconciliationService":
        """Build a service backed by SQLite and Rscript, as configured."""
        store = SqliteStore.for_project(config.db_path, config.project_dir)
        tracer = None
        if config.trace_path:
            tracer = TraceLogger(config.project_dir, config.trace_path)
        return cls(config, store, RscriptTool(config.rscript), tracer=tracer)

    @property
    def scheduler(self):
        return self.engine.scheduler

    # Lifecycle ---------------------------------------------------------------

    def start(self, context: Optional[PackratContext] = None) -> bool:
        """Begin monitoring if the project is in Packrat mode.

        Returns:
            True if file events will now be reconciled
        """
        if context is None:
            context = self.context()
        if not context.mode_on:
            logger.debug(f"packrat mode off for {self.project_dir}, not monitoring")
            return False
        return self.init_monitoring()

    def init_monitoring(self) -> bool:
        # no lockfile: presume this isn't a Packrat project
        if not self.config.lockfile_path.exists():
            return False

        logger.debug(f"found {self.config.lockfile_path}, init monitoring")
        self.monitor.start()
        return True

    def close(self) -> None:
        self.monitor.stop()
        if self.tracer:
            self.tracer.close()
        close = getattr(self.store, "close", None)
        if close:
            close()

    async def join(self) -> None:
        """Wait for any running auto-snapshot (and its follow-ups)."""
        await self.engine.scheduler.join()

    # Notifications -----------------------------------------------------------

    def on_files_changed(self, events: Iterable[FileChangeEvent]) -> None:
        self.monitor.on_files_changed(events)

    def on_file_saved(self, path: str) -> None:
        self.monitor.on_file_changed(path)

    def _on_artifact_changed(self, artifact: Artifact) -> None:
        # Packrat is rewriting the project; its own stop hook reconciles
        if self.actions.is_running:
            return

        if artifact == Artifact.LOCKFILE:
            self.engine.check_hashes(Artifact.LOCKFILE, HashTier.OBSERVED, self.engine.on_lockfile_update)
        else:
            self.engine.check_hashes(Artifact.LIBRARY, HashTier.OBSERVED, self.engine.on_library_update)

    def on_action(self, project: str, action: str, running: bool) -> None:
        """Handle a Packrat start/stop hook notification."""
        previous = self.actions.running_action
        completed = self.actions.on_action(project, action, running)
        if running:
            if real_paths_equal(project, self.project_dir):
                if previous != PackratAction.NONE:
                    self._trace(TraceEventType.WARNING, {"action": action, "running_action": previous})
                self._trace(TraceEventType.ACTION_START, {"action": action})
            return
        if completed is None:
            return

        self._trace(TraceEventType.ACTION_FINISH, {"action": completed})
        if completed == PackratAction.RESTORE:
            self.engine.resolve_state_after_action(PackratAction.RESTORE, Artifact.LOCKFILE)
        elif completed == PackratAction.SNAPSHOT:
            self.engine.resolve_state_after_action(PackratAction.SNAPSHOT, Artifact.LIBRARY)

    # Read-only views ---------------------------------------------------------

    def context(self) -> PackratContext:
        return packrat_context(self.tool, self.project_dir)

    def context_as_json(self) -> Dict[str, Any]:
        return self.context().model_dump()

    def options_as_json(self) -> Dict[str, Any]:
        options: PackratOptions = packrat_options(self.tool, self.project_dir)
        return options.model_dump()

    def annotate_pending_actions(self, target: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Add pending restore/snapshot/clean actions to ``target``."""
        target = target if target is not None else {}
        target.update(self.engine.annotate_pending_actions())
        return target

    def hash_report(self) -> Dict[str, Dict[str, Optional[str]]]:
        """Resolved, observed and computed hash of each artifact."""
        return {
            artifact.value: {
                tier.value: self.engine.get_hash(artifact, tier)
                for tier in (HashTier.RESOLVED, HashTier.OBSERVED, HashTier.COMPUTED)
            }
            for artifact in Artifact
        }

    def _trace(self, event_type: TraceEventType, payload: dict) -> None:
        if self.tracer:
            self.tracer.log(event_type, payload)
