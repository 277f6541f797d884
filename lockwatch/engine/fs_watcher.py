"""File change routing for the lockfile and the private library.

The host (an editor or IDE) owns the actual file-system subscription and
forwards ``(path, kind)`` events. The monitor decides which of them can
affect a tracked artifact:

- the lockfile itself
- directories and DESCRIPTION files inside the library, except the
  IDE-managed package directories (``manipulate``, ``rstudio``) and their
  direct children
"""

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..types import Artifact
from .hashing import DESCRIPTION_FILE


logger = logging.getLogger(__name__)


class FileChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass
class FileChangeEvent:
    """A change reported by the host's file monitor."""
    path: str
    kind: FileChangeKind = FileChangeKind.MODIFIED
    is_dir: Optional[bool] = None
    timestamp: datetime = field(default_factory=datetime.now)


class FileMonitor:
    """Maps file events to the artifact whose hash they may have changed."""

    def __init__(
        self,
        lockfile_path: Path,
        library_path: Path,
        ignored_dirs: Optional[List[str]] = None,
    ):
        self.lockfile_name = Path(lockfile_path).name
        self.library_path = os.path.realpath(library_path)
        self.ignore_patterns = ignored_dirs if ignored_dirs is not None else ["manipulate", "rstudio"]

        self._on_change: Optional[Callable[[Artifact], None]] = None
        self._watching = False

    @property
    def watching(self) -> bool:
        return self._watching

    def set_on_change(self, callback: Callable[[Artifact], None]) -> None:
        """Set callback to invoke with the affected artifact."""
        self._on_change = callback

    def start(self) -> None:
        self._watching = True

    def stop(self) -> None:
        self._watching = False

    def on_files_changed(self, events: Iterable[FileChangeEvent]) -> None:
        for event in events:
            self.on_file_changed(event.path, is_dir=event.is_dir)

    def on_file_changed(self, path: str, is_dir: Optional[bool] = None) -> None:
        """Handle a single changed path (also used for editor saves)."""
        if not self._watching:
            return

        artifact = self.classify(path, is_dir=is_dir)
        if artifact is None:
            return

        logger.debug(f"detected change to {artifact.value} file {path}")
        if self._on_change:
            self._on_change(artifact)

    def classify(self, path: str, is_dir: Optional[bool] = None) -> Optional[Artifact]:
        """Return the artifact ``path`` belongs to, or None if irrelevant."""
        name = os.path.basename(path)
        if name == self.lockfile_name:
            return Artifact.LOCKFILE

        real_path = os.path.realpath(path)
        if not self._is_within_library(real_path):
            return None

        if is_dir is None:
            is_dir = os.path.isdir(real_path)
        if not (is_dir or name == DESCRIPTION_FILE):
            return None

        parent_name = os.path.basename(os.path.dirname(real_path))
        if self._matches_ignore(name) or self._matches_ignore(parent_name):
            return None

        return Artifact.LIBRARY

    def _is_within_library(self, real_path: str) -> bool:
        return real_path == self.library_path or real_path.startswith(self.library_path + os.sep)

    def _matches_ignore(self, name: str) -> bool:
        """Check if a path component matches any ignore pattern."""
        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
        return False
