"""Tests for the coalescing auto-snapshot scheduler."""

import pytest

from lockwatch.engine.auto_snapshot import AutoSnapshotJob, AutoSnapshotScheduler
from lockwatch.testing import GatedRunner


class SchedulerHarness:
    """A scheduler with a gated runner and a scripted library hash."""

    def __init__(self):
        self.runner = GatedRunner()
        self.library_hash = "h0"
        self.settled = 0
        self.scheduler = AutoSnapshotScheduler(
            runner=self.runner,
            current_hash=lambda: self.library_hash,
            on_settled=self._settled,
        )

    def _settled(self):
        self.settled += 1


@pytest.fixture
def harness():
    return SchedulerHarness()


class TestAutoSnapshotJob:

    def test_succeeded(self):
        job = AutoSnapshotJob(target_hash="a")
        assert not job.succeeded

        job.running = False
        job.exit_status = 0
        assert job.succeeded

        job.exit_status = 1
        assert not job.succeeded


class TestAutoSnapshotScheduler:

    @pytest.mark.asyncio
    async def test_idle_request_starts_job(self, harness):
        scheduler = harness.scheduler

        assert scheduler.request("h1") is True
        await harness.runner.wait_started(1)

        assert scheduler.is_running
        assert scheduler.job.target_hash == "h1"
        assert harness.runner.targets == ["h1"]

        harness.runner.release(0)
        await scheduler.join()

        assert not scheduler.is_running
        assert scheduler.job.succeeded
        assert harness.settled == 1

    @pytest.mark.asyncio
    async def test_same_target_is_ignored(self, harness):
        scheduler = harness.scheduler
        scheduler.request("h1")

        assert scheduler.request("h1") is False
        assert scheduler.pending == 0
        assert scheduler.jobs_started == 1

        await harness.runner.wait_started(1)
        harness.runner.release(0)
        await scheduler.join()

    @pytest.mark.asyncio
    async def test_burst_coalesces_to_one_follow_up(self, harness):
        """H2, H3, H2 while running produce exactly one follow-up job."""
        scheduler = harness.scheduler
        scheduler.request("h1")
        await harness.runner.wait_started(1)

        scheduler.request("h2")
        scheduler.request("h3")
        scheduler.request("h2")
        assert scheduler.pending == 3

        # the follow-up targets whatever the library hashes to when job 1 ends
        harness.library_hash = "h4"
        harness.runner.release(0)
        await harness.runner.wait_started(2)

        assert scheduler.pending == 0
        assert scheduler.jobs_started == 2
        assert harness.runner.targets == ["h1", "h4"]
        assert harness.settled == 0

        harness.runner.release(0)
        await scheduler.join()

        assert scheduler.jobs_started == 2
        assert harness.settled == 1

    @pytest.mark.asyncio
    async def test_failure_goes_idle(self, harness):
        """A failed job drops requests queued behind it instead of retrying them."""
        scheduler = harness.scheduler
        scheduler.request("h1")
        await harness.runner.wait_started(1)
        scheduler.request("h2")

        harness.runner.release(1)
        await scheduler.join()

        assert not scheduler.is_running
        assert scheduler.job.exit_status == 1
        assert scheduler.jobs_started == 1
        assert harness.settled == 0
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_failure_does_not_leak_into_next_job(self, harness):
        scheduler = harness.scheduler
        scheduler.request("h1")
        await harness.runner.wait_started(1)
        scheduler.request("h2")
        harness.runner.release(1)
        await scheduler.join()

        scheduler.request("h3")
        await harness.runner.wait_started(2)
        harness.runner.release(0)
        await scheduler.join()

        # no stale follow-up: the successful job settles straight away
        assert scheduler.jobs_started == 2
        assert harness.settled == 1

    @pytest.mark.asyncio
    async def test_settle_callback_error_leaves_scheduler_usable(self, harness):
        def broken_settle():
            harness.settled += 1
            raise ValueError("store is closed")

        scheduler = AutoSnapshotScheduler(harness.runner, lambda: harness.library_hash, broken_settle)
        scheduler.request("h1")
        await harness.runner.wait_started(1)
        harness.runner.release(0)
        await scheduler.join()

        assert not scheduler.is_running
        assert harness.settled == 1

        assert scheduler.request("h2") is True
        await harness.runner.wait_started(2)
        harness.runner.release(0)
        await scheduler.join()

        assert scheduler.jobs_started == 2
        assert harness.settled == 2

    @pytest.mark.asyncio
    async def test_runner_exception_is_failure(self):
        async def broken(target):
            raise RuntimeError("Rscript vanished")

        settled = []
        scheduler = AutoSnapshotScheduler(broken, lambda: "h", lambda: settled.append(True))
        scheduler.request("h1")
        await scheduler.join()

        assert scheduler.job.exit_status == -1
        assert not scheduler.job.running
        assert settled == []

    @pytest.mark.asyncio
    async def test_follow_up_dropped_when_hash_unavailable(self, harness):
        scheduler = harness.scheduler
        scheduler.request("h1")
        await harness.runner.wait_started(1)
        scheduler.request("h2")

        harness.library_hash = None
        harness.runner.release(0)
        await scheduler.join()

        assert scheduler.jobs_started == 1
        assert harness.settled == 0

    @pytest.mark.asyncio
    async def test_new_request_after_idle(self, harness):
        scheduler = harness.scheduler
        scheduler.request("h1")
        await harness.runner.wait_started(1)
        harness.runner.release(0)
        await scheduler.join()

        assert scheduler.request("h1") is True
        await harness.runner.wait_started(2)
        harness.runner.release(0)
        await scheduler.join()

        assert scheduler.jobs_started == 2

    def test_request_without_loop_is_dropped(self, harness):
        assert harness.scheduler.request("h1") is False
        assert harness.scheduler.job is None
        assert harness.scheduler.jobs_started == 0
