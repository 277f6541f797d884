"""Tests for LockwatchConfig."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from lockwatch.config import DEFAULT_DB_PATH, LockwatchConfig
from lockwatch.errors import ConfigError


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("LOCKWATCH_DB_PATH", "LOCKWATCH_RSCRIPT", "LOCKWATCH_TRACE_PATH"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLockwatchConfig:

    def test_defaults(self):
        config = LockwatchConfig(project_dir="/projects/a")

        assert config.db_path == DEFAULT_DB_PATH
        assert config.rscript == "Rscript"
        assert config.ignored_library_dirs == ["manipulate", "rstudio"]
        assert config.trace_path is None

    def test_artifact_paths(self):
        config = LockwatchConfig(project_dir="/projects/a")

        assert config.lockfile_path == Path("/projects/a/packrat/packrat.lock")
        assert config.library_path == Path("/projects/a/packrat/lib")

    def test_custom_layout(self):
        config = LockwatchConfig(project_dir="/p", packrat_folder="deps", lockfile_name="deps.lock", library_subdir="library")

        assert config.lockfile_path == Path("/p/deps/deps.lock")
        assert config.library_path == Path("/p/deps/library")

    def test_empty_project_dir_rejected(self):
        with pytest.raises(ValidationError):
            LockwatchConfig(project_dir="  ")

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            LockwatchConfig(project_dir="/p", watch_everything=True)

    def test_buffer_size_bounds(self):
        with pytest.raises(ValidationError):
            LockwatchConfig(project_dir="/p", event_buffer_size=0)


class TestFromEnv:

    def test_environment_fills_gaps(self, clean_env):
        clean_env.setenv("LOCKWATCH_DB_PATH", "/tmp/env.sqlite")
        clean_env.setenv("LOCKWATCH_RSCRIPT", "/opt/R/bin/Rscript")
        clean_env.setenv("LOCKWATCH_TRACE_PATH", "/tmp/trace.ndjson")

        config = LockwatchConfig.from_env("/projects/a")

        assert config.db_path == "/tmp/env.sqlite"
        assert config.rscript == "/opt/R/bin/Rscript"
        assert config.trace_path == "/tmp/trace.ndjson"

    def test_overrides_win(self, clean_env):
        clean_env.setenv("LOCKWATCH_DB_PATH", "/tmp/env.sqlite")

        config = LockwatchConfig.from_env("/projects/a", db_path="/tmp/cli.sqlite")

        assert config.db_path == "/tmp/cli.sqlite"

    def test_none_overrides_ignored(self, clean_env):
        clean_env.setenv("LOCKWATCH_RSCRIPT", "/opt/R/bin/Rscript")

        config = LockwatchConfig.from_env("/projects/a", rscript=None, db_path=None)

        assert config.rscript == "/opt/R/bin/Rscript"
        assert config.db_path == DEFAULT_DB_PATH

    def test_invalid_raises_config_error(self, clean_env):
        with pytest.raises(ConfigError):
            LockwatchConfig.from_env("/projects/a", event_buffer_size=-1)
