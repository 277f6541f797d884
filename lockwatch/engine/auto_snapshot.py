"""Auto-snapshot scheduling.

A snapshot captures the library into the lockfile. It is expensive and
must never run concurrently with itself, while a package install can fire
hundreds of file events in a burst. The scheduler therefore owns a single
job slot:

- Idle + request          -> start a job for the target hash
- Running + same target   -> ignore
- Running + other target  -> bump the pending counter
- job fails               -> Idle, counter cleared, no follow-up
- job succeeds, pending   -> reset counter, one follow-up for the
                             library hash recomputed now
- job succeeds, none      -> Idle, settle the library state

Jobs are asyncio tasks on the service loop, so completion handling runs on
the same thread as every other engine event.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from ..logs.trace import TraceEventType, TraceLogger


logger = logging.getLogger(__name__)


@dataclass
class AutoSnapshotJob:
    """One in-flight background capture."""
    target_hash: str
    running: bool = True
    exit_status: Optional[int] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return not self.running and self.exit_status == 0


class AutoSnapshotScheduler:
    """Runs at most one auto-snapshot at a time, coalescing extra requests."""

    def __init__(
        self,
        runner: Callable[[str], Awaitable[int]],
        current_hash: Callable[[], Optional[str]],
        on_settled: Callable[[], None],
        tracer: Optional[TraceLogger] = None,
    ):
        """
        Args:
            runner: Runs a capture for the target hash, returns exit status
            current_hash: Recomputes the library hash (None if unavailable)
            on_settled: Called when a successful job leaves nothing pending
            tracer: Optional trace log
        """
        self._runner = runner
        self._current_hash = current_hash
        self._on_settled = on_settled
        self._tracer = tracer

        self._job: Optional[AutoSnapshotJob] = None
        self._pending = 0
        self.jobs_started = 0

    @property
    def job(self) -> Optional[AutoSnapshotJob]:
        return self._job

    @property
    def is_running(self) -> bool:
        return self._job is not None and self._job.running

    @property
    def pending(self) -> int:
        return self._pending

    def request(self, target_hash: str) -> bool:
        """Ask for a snapshot converging on ``target_hash``.

        Returns:
            True if a new job was started
        """
        if self.is_running:
            if self._job.target_hash == target_hash:
                logger.debug(f"snapshot already running ({target_hash})")
                return False

            self._pending += 1
            logger.debug(f"snapshot requested while running, queueing ({self._pending})")
            self._trace(TraceEventType.SNAPSHOT_QUEUED, {"target": target_hash, "pending": self._pending})
            return False

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, auto snapshot for {target_hash} dropped")
            return False

        job = AutoSnapshotJob(target_hash=target_hash)
        self._job = job
        self.jobs_started += 1
        self._trace(TraceEventType.SNAPSHOT_START, {"target": target_hash})
        job.task = loop.create_task(self._run(job))
        return True

    async def _run(self, job: AutoSnapshotJob) -> None:
        try:
            exit_status = await self._runner(job.target_hash)
        except Exception as e:
            logger.error(f"auto snapshot for {job.target_hash} failed: {e}")
            exit_status = -1

        job.running = False
        job.exit_status = exit_status
        job.finished_at = datetime.now()
        try:
            self._on_completed(job)
        except Exception as e:
            logger.exception(f"handling completion of auto snapshot for {job.target_hash} failed: {e}")

    def _on_completed(self, job: AutoSnapshotJob) -> None:
        logger.debug(f"finished auto snapshot, exit status = {job.exit_status}")
        self._trace(TraceEventType.SNAPSHOT_FINISH, {"target": job.target_hash, "exit_status": job.exit_status})

        if job.exit_status != 0:
            if self._pending > 0:
                logger.debug(f"dropping {self._pending} pending snapshot request(s) after failure")
                self._pending = 0
            return

        if self._pending > 0:
            logger.debug("executing pending snapshot")
            self._pending = 0
            new_hash = self._current_hash()
            if new_hash is None:
                logger.warning("library hash unavailable, pending snapshot dropped")
                return
            self.request(new_hash)
        else:
            self._on_settled()

    async def join(self) -> None:
        """Wait until no job is running, including follow-ups."""
        while self.is_running:
            await self._job.task

    def _trace(self, event_type: TraceEventType, payload: dict) -> None:
        if self._tracer:
            self._tracer.log(event_type, payload)
