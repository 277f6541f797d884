"""Interface to the external dependency tool.

Everything lockwatch knows about Packrat itself goes through this narrow
protocol: whether it is installed, what a project's mode and options are,
which actions are pending, and how to run a capture. The engine depends
only on this protocol, so tests drive it with a scripted fake.
"""

from typing import Any, Callable, Dict, List, Optional, Protocol

from ..types import PackratAction


OutputCallback = Callable[[str], None]


class DependencyTool(Protocol):
    """Protocol for the dependency manager behind a project."""

    def is_installed(self) -> bool:
        """Whether a new enough Packrat is available."""
        ...

    def build_tools_available(self) -> bool:
        """Whether packages can be compiled from source."""
        ...

    def check_packified(self, project_dir: str) -> bool:
        """Whether the project has been initialized with Packrat."""
        ...

    def is_mode_on(self, project_dir: str) -> bool:
        """Whether Packrat mode is active for the project."""
        ...

    def pending_actions(self, action: PackratAction, project_dir: str) -> List[Dict[str, Any]]:
        """Operations ``action`` would perform right now; empty if none.

        Raises:
            ToolError: If the tool cannot be queried
        """
        ...

    def auto_snapshot_command(self, project_dir: str) -> List[str]:
        """Command line performing an automatic snapshot of the project."""
        ...

    async def run_capture(self, project_dir: str, on_output: Optional[OutputCallback] = None) -> int:
        """Run an automatic snapshot out of process.

        Returns:
            Exit status of the capture process

        Raises:
            ToolError: If the process cannot be started
        """
        ...

    def get_options(self, project_dir: str) -> Dict[str, Any]:
        """Raw project options keyed by Packrat option name."""
        ...

    def bootstrap(self, project_dir: str, enter: bool) -> None:
        """Initialize Packrat for a project."""
        ...

    def install(self) -> None:
        """Install the Packrat package."""
        ...
