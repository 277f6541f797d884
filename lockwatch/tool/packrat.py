"""Packrat driven through Rscript.

Each query runs a short R expression in a fresh ``Rscript`` process and
reads its result from stdout. Structured results are printed as JSON by
jsonlite. The auto-snapshot runs asynchronously so the event loop keeps
serving while Packrat captures the library.
"""

from __future__ import annotations

import asyncio
import json
import logging
import subprocess
from typing import Any, Dict, List, Optional

from ..errors import ToolError
from ..types import PackratAction
from .base import OutputCallback


logger = logging.getLogger(__name__)

REQUIRED_PACKRAT_VERSION = "0.2.0.109"

# status() columns: package, packrat.version, library.version, currently.used
PENDING_ACTIONS_EXPR = """
status <- packrat::status(project = {project}, quiet = TRUE)
action <- {action}
lockVer <- status$packrat.version
libVer <- status$library.version
pending <- if (identical(action, "snapshot")) {{
  status[!is.na(libVer) & (is.na(lockVer) | lockVer != libVer), , drop = FALSE]
}} else if (identical(action, "restore")) {{
  status[!is.na(lockVer) & (is.na(libVer) | lockVer != libVer), , drop = FALSE]
}} else if (identical(action, "clean")) {{
  status[!is.na(libVer) & is.na(lockVer) & !status$currently.used, , drop = FALSE]
}} else {{
  status[0, , drop = FALSE]
}}
cat(jsonlite::toJSON(pending, dataframe = "rows", na = "null"))
"""


def r_string(value: str) -> str:
    """Quote ``value`` as an R string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def r_logical(value: bool) -> str:
    return "TRUE" if value else "FALSE"


class RscriptTool:
    """DependencyTool implementation backed by Rscript and the packrat package."""

    def __init__(self, rscript: str = "Rscript", timeout: Optional[float] = 120.0):
        self.rscript = rscript
        self.timeout = timeout

    def _eval(self, expr: str, label: str) -> str:
        """Evaluate an R expression and return its stdout."""
        cmd = [self.rscript, "--vanilla", "-e", expr]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ToolError(label, f"{self.rscript} not found") from e
        except subprocess.TimeoutExpired as e:
            raise ToolError(label, f"timed out after {self.timeout}s") from e
        except OSError as e:
            raise ToolError(label, f"cannot run {self.rscript}: {e}") from e

        if result.returncode != 0:
            raise ToolError(label, result.stderr.strip() or "no output", result.returncode)
        return result.stdout.strip()

    def _eval_logical(self, expr: str, label: str) -> bool:
        output = self._eval(f"cat(isTRUE({expr}))", label)
        return output == "TRUE"

    def _eval_json(self, expr: str, label: str) -> Any:
        output = self._eval(expr, label)
        try:
            return json.loads(output) if output else None
        except json.JSONDecodeError as e:
            raise ToolError(label, f"invalid JSON output: {output[:80]}") from e

    def is_installed(self) -> bool:
        return self._eval_logical(
            f"requireNamespace('packrat', quietly = TRUE) && "
            f"utils::packageVersion('packrat') >= {r_string(REQUIRED_PACKRAT_VERSION)}",
            "is_installed",
        )

    def build_tools_available(self) -> bool:
        return self._eval_logical(
            "requireNamespace('pkgbuild', quietly = TRUE) && pkgbuild::has_build_tools()",
            "build_tools_available",
        )

    def check_packified(self, project_dir: str) -> bool:
        return self._eval_logical(
            f"packrat:::checkPackified(project = {r_string(project_dir)}, quiet = TRUE)",
            "check_packified",
        )

    def is_mode_on(self, project_dir: str) -> bool:
        return self._eval_logical(
            f"packrat:::isPackratModeOn(project = {r_string(project_dir)})",
            "is_mode_on",
        )

    def pending_actions(self, action: PackratAction, project_dir: str) -> List[Dict[str, Any]]:
        expr = PENDING_ACTIONS_EXPR.format(
            project=r_string(project_dir),
            action=r_string(action.value),
        )
        actions = self._eval_json(expr, f"pending_actions({action.value})")
        if actions is None:
            return []
        if not isinstance(actions, list):
            raise ToolError(f"pending_actions({action.value})", "expected a JSON array")
        return actions

    def auto_snapshot_command(self, project_dir: str) -> List[str]:
        expr = (
            f"packrat::snapshot(project = {r_string(project_dir)}, "
            f"ignore.stale = TRUE, prompt = FALSE, snapshot.sources = FALSE)"
        )
        return [self.rscript, "--vanilla", "-e", expr]

    async def run_capture(self, project_dir: str, on_output: Optional[OutputCallback] = None) -> int:
        cmd = self.auto_snapshot_command(project_dir)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=project_dir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ToolError("run_capture", str(e)) from e

        async def pump(stream: asyncio.StreamReader) -> None:
            while True:
                line = await stream.readline()
                if not line:
                    break
                if on_output:
                    on_output(line.decode("utf-8", errors="replace").rstrip())

        await asyncio.gather(pump(proc.stdout), pump(proc.stderr))
        return await proc.wait()

    def get_options(self, project_dir: str) -> Dict[str, Any]:
        options = self._eval_json(
            f"cat(jsonlite::toJSON(packrat::get_opts(simplify = FALSE, "
            f"project = {r_string(project_dir)}), auto_unbox = TRUE))",
            "get_options",
        )
        if not isinstance(options, dict):
            raise ToolError("get_options", "expected a JSON object")
        return options

    def bootstrap(self, project_dir: str, enter: bool) -> None:
        self._eval(
            f"packrat:::bootstrap(project = {r_string(project_dir)}, "
            f"enter = {r_logical(enter)}, restart = FALSE)",
            "bootstrap",
        )

    def install(self) -> None:
        self._eval(
            "utils::install.packages('packrat', repos = 'https://cloud.r-project.org')",
            "install",
        )
