"""Tracking of the Packrat action currently running in a project.

Packrat reports each snapshot/restore/clean through a start/stop hook.
While an action runs it rewrites the library and lockfile, so every file
event it causes is noise until it finishes; the tracker is what lets the
service ignore them.
"""

import logging
import os
from typing import Optional

from ..types import PackratAction


logger = logging.getLogger(__name__)


def real_paths_equal(a: str, b: str) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


class ActionTracker:
    """Holds the single "currently running action" slot for one project."""

    def __init__(self, project_dir: str):
        self.project_dir = project_dir
        self.running_action = PackratAction.NONE

    @property
    def is_running(self) -> bool:
        return self.running_action != PackratAction.NONE

    def on_action(self, project: str, action_name: str, running: bool) -> Optional[PackratAction]:
        """Record a start/stop notification.

        Args:
            project: Project path the hook fired for
            action_name: "snapshot", "restore", "clean" or anything else
            running: True on start, False on stop

        Returns:
            The action that just finished on a stop notification for this
            project, otherwise None
        """
        if not real_paths_equal(self.project_dir, project):
            logger.debug(f"ignoring '{action_name}' for other project {project}")
            return None

        if running and self.is_running:
            logger.warning(
                f"'{action_name}' executed while action {self.running_action.value} "
                f"was already running"
            )

        logger.debug(f"packrat action '{action_name}' {'started' if running else 'finished'}")

        if running:
            self.running_action = PackratAction.from_name(action_name)
            return None

        completed = self.running_action
        self.running_action = PackratAction.NONE
        return completed
