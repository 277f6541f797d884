"""Test doubles for lockwatch.

Provides a scripted DependencyTool and a gated capture runner, so engine
behaviour can be driven step by step without R installed.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ToolError
from .tool.base import OutputCallback
from .types import PackratAction


class GatedRunner:
    """Capture runner whose jobs finish only when the test releases them."""

    def __init__(self):
        self.targets: List[str] = []
        self.gates: List[asyncio.Future] = []

    async def __call__(self, target: str) -> int:
        self.targets.append(target)
        gate = asyncio.get_running_loop().create_future()
        self.gates.append(gate)
        return await gate

    async def wait_started(self, count: int) -> None:
        """Yield to the loop until ``count`` jobs have called the runner."""
        for _ in range(100):
            if len(self.gates) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} capture(s), saw {len(self.gates)}")

    def release(self, exit_status: int = 0) -> None:
        """Finish the oldest unfinished job with ``exit_status``."""
        for gate in self.gates:
            if not gate.done():
                gate.set_result(exit_status)
                return
        raise AssertionError("no capture is waiting")


class FakeTool:
    """Scripted DependencyTool.

    ``pending`` maps actions to the descriptors pending_actions() returns;
    ``failing`` names methods that raise ToolError. Captures finish
    immediately with ``capture_exit_status`` unless ``hold_captures`` is
    set, in which case ``runner.release()`` finishes them.
    """

    def __init__(
        self,
        installed: bool = True,
        build_tools: bool = True,
        packified: bool = True,
        mode_on: bool = True,
        options: Optional[Dict[str, Any]] = None,
        hold_captures: bool = False,
    ):
        self.installed = installed
        self.build_tools = build_tools
        self.packified = packified
        self.mode_on = mode_on
        self.options = options if options is not None else {
            "auto.snapshot": True,
            "vcs.ignore.lib": True,
            "vcs.ignore.src": False,
        }
        self.pending: Dict[PackratAction, List[Dict[str, Any]]] = {}
        self.failing: set = set()
        self.hold_captures = hold_captures
        self.capture_exit_status = 0
        self.runner = GatedRunner()

        self.calls: List[str] = []
        self.captures: List[str] = []
        self.bootstraps: List[tuple] = []

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise ToolError(name, "scripted failure", 1)

    def is_installed(self) -> bool:
        self._call("is_installed")
        return self.installed

    def build_tools_available(self) -> bool:
        self._call("build_tools_available")
        return self.build_tools

    def check_packified(self, project_dir: str) -> bool:
        self._call("check_packified")
        return self.packified

    def is_mode_on(self, project_dir: str) -> bool:
        self._call("is_mode_on")
        return self.mode_on

    def pending_actions(self, action: PackratAction, project_dir: str) -> List[Dict[str, Any]]:
        self._call(f"pending_actions:{action.value}")
        return list(self.pending.get(action, []))

    def auto_snapshot_command(self, project_dir: str) -> List[str]:
        self._call("auto_snapshot_command")
        return ["Rscript", "-e", f"packrat::snapshot('{project_dir}')"]

    async def run_capture(self, project_dir: str, on_output: Optional[OutputCallback] = None) -> int:
        self._call("run_capture")
        self.captures.append(project_dir)
        if on_output:
            on_output("Snapshot written to packrat.lock")
        if self.hold_captures:
            return await self.runner(project_dir)
        return self.capture_exit_status

    def get_options(self, project_dir: str) -> Dict[str, Any]:
        self._call("get_options")
        return dict(self.options)

    def bootstrap(self, project_dir: str, enter: bool) -> None:
        self._call("bootstrap")
        self.bootstraps.append((project_dir, enter))

    def install(self) -> None:
        self._call("install")
        self.installed = True


def write_lockfile(project_dir, content: str) -> None:
    """Write ``packrat/packrat.lock`` under ``project_dir``."""
    path = Path(project_dir) / "packrat" / "packrat.lock"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def add_package(project_dir, name: str, description: str, platform: str = "x86_64-pc-linux-gnu", version: str = "4.3.1"):
    """Install a fake package (its DESCRIPTION file) into the private library.

    Returns:
        Path of the DESCRIPTION file
    """
    pkg_dir = Path(project_dir) / "packrat" / "lib" / platform / version / name
    pkg_dir.mkdir(parents=True, exist_ok=True)
    desc = pkg_dir / "DESCRIPTION"
    desc.write_text(description, encoding="utf-8")
    return desc
