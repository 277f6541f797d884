"""Tests for ReconciliationService wiring and lifecycle."""

import json

import pytest

from lockwatch.config import LockwatchConfig
from lockwatch.context import PackratContext
from lockwatch.engine.fs_watcher import FileChangeEvent
from lockwatch.engine.service import ReconciliationService
from lockwatch.logs.trace import TraceLogger
from lockwatch.state.sqlite import SqliteStore
from lockwatch.testing import add_package, write_lockfile
from lockwatch.tool.packrat import RscriptTool
from lockwatch.types import Artifact, HashTier


def lockfile_of(project_dir):
    return str(project_dir / "packrat" / "packrat.lock")


@pytest.fixture
def started(service, project_dir):
    """A monitoring service with settled hashes."""
    write_lockfile(project_dir, "PackratFormat: 1.4\n")
    add_package(project_dir, "digest", "Package: digest\n")
    assert service.start()
    service.annotate_pending_actions()
    for artifact in Artifact:
        service.engine.update_hash(artifact, HashTier.RESOLVED)
    return service


class TestLifecycle:

    def test_start_requires_mode_on(self, service, fake_tool, project_dir):
        write_lockfile(project_dir, "A")
        fake_tool.mode_on = False

        assert service.start() is False
        assert not service.monitor.watching

    def test_start_requires_lockfile(self, service):
        assert service.start() is False
        assert not service.monitor.watching

    def test_start_with_explicit_context(self, service, fake_tool, project_dir):
        write_lockfile(project_dir, "A")

        assert service.start(PackratContext(available=True, applicable=True, packified=True, mode_on=True))
        assert service.monitor.watching
        assert "is_mode_on" not in fake_tool.calls

    def test_close_stops_monitoring(self, service, project_dir):
        write_lockfile(project_dir, "A")
        service.start()
        service.close()

        assert not service.monitor.watching

    def test_create_uses_sqlite_and_rscript(self, config):
        service = ReconciliationService.create(config)
        try:
            assert isinstance(service.store, SqliteStore)
            assert isinstance(service.tool, RscriptTool)
            assert service.tracer is None
        finally:
            service.close()

    def test_create_with_trace(self, project_dir, tmp_path_factory):
        out = tmp_path_factory.mktemp("out")
        config = LockwatchConfig(
            project_dir=str(project_dir),
            db_path=str(out / "state.sqlite"),
            trace_path=str(out / "trace.ndjson"),
        )
        service = ReconciliationService.create(config)
        service.close()

        summary = json.loads((out / "trace.ndjson.summary.json").read_text())
        assert summary["project"] == str(project_dir)

    def test_state_survives_restart(self, config, fake_tool, project_dir):
        write_lockfile(project_dir, "A")
        first = ReconciliationService(config, SqliteStore.for_project(config.db_path, config.project_dir), fake_tool)
        first.annotate_pending_actions()
        observed = first.engine.get_hash(Artifact.LOCKFILE, HashTier.OBSERVED)
        first.close()

        second = ReconciliationService(config, SqliteStore.for_project(config.db_path, config.project_dir), fake_tool)
        try:
            assert second.engine.get_hash(Artifact.LOCKFILE, HashTier.OBSERVED) == observed
            assert observed
        finally:
            second.close()


class TestFileEvents:

    def test_lockfile_event_notifies(self, started, project_dir):
        write_lockfile(project_dir, "PackratFormat: 1.4\nPackage: digest\n")

        started.on_files_changed([FileChangeEvent(path=lockfile_of(project_dir))])

        assert started.notifier.emitted == 1

    def test_saved_lockfile_notifies(self, started, project_dir):
        write_lockfile(project_dir, "edited by hand")

        started.on_file_saved(lockfile_of(project_dir))

        assert started.notifier.emitted == 1

    @pytest.mark.asyncio
    async def test_library_event_snapshots(self, started, fake_tool, project_dir):
        desc = add_package(project_dir, "jsonlite", "Package: jsonlite\n")

        started.on_files_changed([FileChangeEvent(path=str(desc))])
        await started.join()

        assert fake_tool.captures == [str(project_dir)]

    def test_irrelevant_events_do_nothing(self, started, fake_tool, project_dir):
        (project_dir / "notes.md").write_text("hi")

        started.on_files_changed([FileChangeEvent(path=str(project_dir / "notes.md"))])

        assert started.notifier.emitted == 0
        assert fake_tool.captures == []

    def test_events_suppressed_while_action_runs(self, started, fake_tool, project_dir):
        started.on_action(str(project_dir), "restore", True)
        write_lockfile(project_dir, "restored")
        add_package(project_dir, "rlang", "Package: rlang\n")

        started.on_file_saved(lockfile_of(project_dir))

        assert started.notifier.emitted == 0
        assert started.scheduler.job is None


class TestActions:

    def test_restore_stop_resolves(self, started, project_dir):
        started.on_action(str(project_dir), "restore", True)
        write_lockfile(project_dir, "restored")
        started.on_action(str(project_dir), "restore", False)

        engine = started.engine
        assert engine.get_hash(Artifact.LOCKFILE, HashTier.RESOLVED) == engine.computed_hash(Artifact.LOCKFILE)
        assert started.notifier.emitted == 1
        assert not started.actions.is_running

    def test_snapshot_stop_resolves_library(self, started, project_dir):
        started.on_action(str(project_dir), "snapshot", True)
        add_package(project_dir, "rlang", "Package: rlang\n")
        started.on_action(str(project_dir), "snapshot", False)

        engine = started.engine
        assert engine.get_hash(Artifact.LIBRARY, HashTier.RESOLVED) == engine.computed_hash(Artifact.LIBRARY)

    def test_clean_stop_does_nothing(self, started, project_dir):
        started.on_action(str(project_dir), "clean", True)
        add_package(project_dir, "rlang", "Package: rlang\n")
        started.on_action(str(project_dir), "clean", False)

        assert started.notifier.emitted == 0
        assert started.engine.is_unresolved(Artifact.LIBRARY) is False

    def test_other_project_ignored(self, started, tmp_path_factory):
        other = tmp_path_factory.mktemp("other")
        started.on_action(str(other), "restore", True)

        assert not started.actions.is_running

    def test_overlapping_start_is_traced(self, config, store, fake_tool, project_dir, tmp_path_factory):
        trace_path = tmp_path_factory.mktemp("trace") / "trace.ndjson"
        service = ReconciliationService(config, store, fake_tool, tracer=TraceLogger(config.project_dir, str(trace_path)))
        other = tmp_path_factory.mktemp("other")

        service.on_action(str(project_dir), "snapshot", True)
        service.on_action(str(other), "clean", True)
        service.on_action(str(project_dir), "restore", True)
        service.close()

        events = [json.loads(line) for line in trace_path.read_text().splitlines()]
        assert [event["type"] for event in events] == ["action.start", "warning", "action.start"]
        assert events[1]["payload"] == {"action": "restore", "running_action": "snapshot"}
        summary = json.loads(trace_path.with_name("trace.ndjson.summary.json").read_text())
        assert summary["warnings"] == 1


class TestViews:

    def test_context_as_json(self, service):
        assert service.context_as_json() == {
            "available": True,
            "applicable": True,
            "packified": True,
            "mode_on": True,
        }

    def test_options_as_json(self, service, fake_tool):
        fake_tool.options = {"auto.snapshot": [False], "vcs.ignore.lib": True, "vcs.ignore.src": True}

        assert service.options_as_json() == {
            "auto_snapshot": False,
            "vcs_ignore_lib": True,
            "vcs_ignore_src": True,
        }

    def test_annotate_into_target(self, service, project_dir):
        write_lockfile(project_dir, "A")
        target = {"context": "kept"}

        result = service.annotate_pending_actions(target)

        assert result is target
        assert result["context"] == "kept"
        assert set(result) == {"context", "restore_actions", "snapshot_actions", "clean_actions"}

    def test_hash_report(self, service, project_dir):
        write_lockfile(project_dir, "A")

        report = service.hash_report()

        assert set(report) == {"lockfile", "library"}
        assert report["lockfile"]["resolved"] == ""
        assert report["lockfile"]["computed"] == service.engine.computed_hash(Artifact.LOCKFILE)
        assert report["library"]["computed"] == ""
