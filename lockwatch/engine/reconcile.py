"""Reconciliation of on-disk artifact state with the client's view.

Each artifact has three hashes: the one last known consistent with Packrat
(resolved), the one last shown to the client (observed) and the current one
(computed). Comparing them tells the engine when to refresh the client and
when to capture the library with an auto-snapshot.

All methods run on the service's event loop thread. Failures of the
external tool or of reading an artifact are logged and degrade to "nothing
changed"; nothing here raises into the host.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Set

from ..errors import ArtifactReadError, ToolError
from ..logs.trace import TraceEventType, TraceLogger
from ..rpc.notifications import ClientEventKind, ClientNotifier
from ..state.hash_store import HashStore, key_of
from ..tool.base import DependencyTool
from ..types import Artifact, HashTier, PackratAction
from .auto_snapshot import AutoSnapshotScheduler
from .hashing import HashComputer


logger = logging.getLogger(__name__)

MismatchHandler = Callable[[str, str], None]


class ReconciliationEngine:
    """Compares stored and computed hashes and decides what follows."""

    def __init__(
        self,
        project_dir: str,
        hashes: HashStore,
        computer: HashComputer,
        tool: DependencyTool,
        notifier: ClientNotifier,
        tracer: Optional[TraceLogger] = None,
    ):
        self.project_dir = project_dir
        self.hashes = hashes
        self.computer = computer
        self.tool = tool
        self.notifier = notifier
        self.tracer = tracer

        self.scheduler = AutoSnapshotScheduler(
            runner=self._run_capture,
            current_hash=lambda: self.computed_hash(Artifact.LIBRARY),
            on_settled=lambda: self.resolve_state_after_action(PackratAction.SNAPSHOT, Artifact.LIBRARY),
            tracer=tracer,
        )

        self._checking: Set[Artifact] = set()

    # Hashes ------------------------------------------------------------------

    def computed_hash(self, artifact: Artifact) -> Optional[str]:
        """Current hash of ``artifact``, or None if it could not be read."""
        try:
            return self.computer.compute(artifact)
        except ArtifactReadError as e:
            logger.error(str(e))
            self._trace(TraceEventType.ERROR, {"artifact": artifact, "message": str(e)})
            return None

    def get_hash(self, artifact: Artifact, tier: HashTier) -> Optional[str]:
        if tier == HashTier.COMPUTED:
            return self.computed_hash(artifact)
        return self.hashes.get(artifact, tier)

    def update_hash(self, artifact: Artifact, tier: HashTier) -> str:
        """Store the computed hash in ``tier`` and return it.

        If the artifact cannot be read the stored value is left untouched
        and returned instead.
        """
        new_hash = self.computed_hash(artifact)
        if new_hash is None:
            return self.hashes.get(artifact, tier)

        old_hash = self.hashes.get(artifact, tier)
        if self.hashes.put(artifact, tier, new_hash, trigger="update_hash"):
            self._trace(TraceEventType.HASH_UPDATE, {
                "key": key_of(artifact, tier),
                "old": old_hash,
                "new": new_hash,
            })
        return new_hash

    @contextmanager
    def _guard(self, artifact: Artifact):
        """Yield False if a check for ``artifact`` is already on the stack."""
        if artifact in self._checking:
            yield False
            return
        self._checking.add(artifact)
        try:
            yield True
        finally:
            self._checking.discard(artifact)

    def check_hashes(self, artifact: Artifact, tier: HashTier, on_mismatch: MismatchHandler) -> bool:
        """Call ``on_mismatch(old, new)`` if the stored and computed hash differ.

        A check arriving while one for the same artifact is in progress is
        dropped: it was almost certainly caused by the first check touching
        files that are being watched.

        Returns:
            True if the handler ran
        """
        with self._guard(artifact) as entered:
            if not entered:
                logger.debug(f"dropping recursive {artifact.value} hash check")
                return False

            old_hash = self.hashes.get(artifact, tier)
            new_hash = self.computed_hash(artifact)

            if new_hash is None or old_hash == new_hash:
                return False

            on_mismatch(old_hash, new_hash)
            return True

    def is_unresolved(self, artifact: Artifact) -> bool:
        """True when observed and resolved are both known and disagree."""
        observed = self.hashes.get(artifact, HashTier.OBSERVED)
        resolved = self.hashes.get(artifact, HashTier.RESOLVED)
        if not observed or not resolved:
            return False
        return observed != resolved

    # Mismatch handlers -------------------------------------------------------

    def on_lockfile_update(self, old_hash: str, new_hash: str) -> None:
        self.emit_packages_changed()

    def on_library_update(self, old_hash: str, new_hash: str) -> None:
        # a pending restore would overwrite the library we'd be capturing
        if not self.is_unresolved(Artifact.LOCKFILE):
            self.scheduler.request(new_hash)
            return

        logger.debug(
            f"lockfile observed hash {self.hashes.get(Artifact.LOCKFILE, HashTier.OBSERVED)} "
            f"doesn't match resolved hash {self.hashes.get(Artifact.LOCKFILE, HashTier.RESOLVED)}, "
            f"skipping auto snapshot"
        )
        self._trace(TraceEventType.SNAPSHOT_SKIPPED, {"target": new_hash})
        self.emit_packages_changed()

    # Pending actions ---------------------------------------------------------

    def pending_actions(self, action: PackratAction) -> List[Dict[str, Any]]:
        """Actions Packrat would perform for ``action``; [] on tool failure."""
        try:
            return self.tool.pending_actions(action, self.project_dir)
        except ToolError as e:
            logger.error(str(e))
            self._trace(TraceEventType.ERROR, {"action": action, "message": str(e)})
            return []

    def resolve_state_after_action(self, action: PackratAction, artifact: Artifact) -> None:
        """Settle hashes after a snapshot or restore finished."""
        # the action changed the underlying store: refresh the client
        computed = self.computed_hash(artifact)
        if computed is not None and self.hashes.get(artifact, HashTier.OBSERVED) != computed:
            self.emit_packages_changed()

        # a consistent state for one artifact means the whole project is
        if not self.pending_actions(action):
            self.update_hash(Artifact.LIBRARY, HashTier.RESOLVED)
            self.update_hash(Artifact.LOCKFILE, HashTier.RESOLVED)

    def annotate_pending_actions(self) -> Dict[str, Optional[List[Dict[str, Any]]]]:
        """Mark current state observed and list what each action would do.

        Snapshot actions are only queried when the library moved since it
        was last resolved, restore actions only when the lockfile did. A
        value of None means nothing is pending or the query was skipped.
        """
        library_hash = self.update_hash(Artifact.LIBRARY, HashTier.OBSERVED)
        lockfile_hash = self.update_hash(Artifact.LOCKFILE, HashTier.OBSERVED)

        library_dirty = library_hash != self.hashes.get(Artifact.LIBRARY, HashTier.RESOLVED)
        lockfile_dirty = lockfile_hash != self.hashes.get(Artifact.LOCKFILE, HashTier.RESOLVED)

        restore_actions = None
        snapshot_actions = None
        if library_dirty:
            snapshot_actions = self.pending_actions(PackratAction.SNAPSHOT) or None
        if lockfile_dirty:
            restore_actions = self.pending_actions(PackratAction.RESTORE) or None
        clean_actions = self.pending_actions(PackratAction.CLEAN) or None

        return {
            "restore_actions": restore_actions,
            "snapshot_actions": snapshot_actions,
            "clean_actions": clean_actions,
        }

    # Side effects ------------------------------------------------------------

    def emit_packages_changed(self) -> None:
        self._trace(TraceEventType.CLIENT_EVENT, {"kind": ClientEventKind.INSTALLED_PACKAGES_CHANGED})
        self.notifier.emit(ClientEventKind.INSTALLED_PACKAGES_CHANGED)

    async def _run_capture(self, target_hash: str) -> int:
        command = self.tool.auto_snapshot_command(self.project_dir)
        logger.debug(f"starting auto snapshot ({target_hash}), command: {' '.join(command)}")
        return await self.tool.run_capture(
            self.project_dir,
            on_output=lambda line: logger.debug(f"(auto snapshot) {line}"),
        )

    def _trace(self, event_type: TraceEventType, payload: dict) -> None:
        if self.tracer:
            self.tracer.log(event_type, payload)
