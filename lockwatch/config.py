"""Configuration for lockwatch.

Settings come from keyword arguments, with environment overrides applied by
``LockwatchConfig.from_env``:

- LOCKWATCH_DB_PATH: SQLite file holding the per-project hash state
- LOCKWATCH_RSCRIPT: Rscript binary used to talk to Packrat
- LOCKWATCH_TRACE_PATH: NDJSON trace file (tracing disabled when unset)
"""

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError


DEFAULT_DB_PATH = str(Path.home() / ".local" / "share" / "lockwatch" / "state.sqlite")


class LockwatchConfig(BaseModel):
    """Configuration for one monitored project."""

    model_config = ConfigDict(extra='forbid')

    project_dir: str = Field(description="Root directory of the project")
    db_path: str = Field(default=DEFAULT_DB_PATH, description="Path to the state database")
    rscript: str = Field(default="Rscript", description="Rscript executable")
    packrat_folder: str = Field(default="packrat", description="Packrat folder inside the project")
    lockfile_name: str = Field(default="packrat.lock", description="Lockfile name inside the Packrat folder")
    library_subdir: str = Field(default="lib", description="Private library inside the Packrat folder")
    ignored_library_dirs: List[str] = Field(
        default_factory=lambda: ["manipulate", "rstudio"],
        description="Package directories managed by the IDE, ignored by the file monitor"
    )
    trace_path: Optional[str] = Field(default=None, description="NDJSON trace output file")
    event_buffer_size: int = Field(default=1000, ge=1, le=100_000, description="Client event buffer size")

    @field_validator('project_dir')
    def validate_project_dir(cls, v):
        if not v.strip():
            raise ValueError("Project directory cannot be empty")
        return v

    @property
    def project_path(self) -> Path:
        return Path(self.project_dir)

    @property
    def lockfile_path(self) -> Path:
        return self.project_path / self.packrat_folder / self.lockfile_name

    @property
    def library_path(self) -> Path:
        return self.project_path / self.packrat_folder / self.library_subdir

    @classmethod
    def from_env(cls, project_dir: str, **overrides) -> "LockwatchConfig":
        """Build a config, letting LOCKWATCH_* environment variables fill gaps.

        Explicit keyword overrides win over the environment.
        """
        values = {"project_dir": project_dir}
        env_map = {
            "db_path": "LOCKWATCH_DB_PATH",
            "rscript": "LOCKWATCH_RSCRIPT",
            "trace_path": "LOCKWATCH_TRACE_PATH",
        }
        for field_name, env_name in env_map.items():
            env_value = os.getenv(env_name)
            if env_value:
                values[field_name] = env_value
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid lockwatch configuration: {e}") from e
