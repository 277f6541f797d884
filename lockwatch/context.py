"""Project-level Packrat context and options.

These are read-only views used by the RPC surface and the CLI. Every tool
failure is logged and replaced by a conservative default.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ToolError
from .tool.base import DependencyTool


logger = logging.getLogger(__name__)


class PackratContext(BaseModel):
    """What the client needs to know to offer Packrat features."""

    model_config = ConfigDict(extra='forbid')

    available: bool = Field(default=False, description="A new enough Packrat is installed")
    applicable: bool = Field(default=False, description="Available and a project is open")
    packified: bool = Field(default=False, description="The project uses Packrat")
    mode_on: bool = Field(default=False, description="Packrat mode is active")


class PackratOptions(BaseModel):
    """Project options mirrored from Packrat."""

    model_config = ConfigDict(extra='forbid')

    auto_snapshot: bool = True
    vcs_ignore_lib: bool = True
    vcs_ignore_src: bool = False


# Packrat option name -> (json name, default)
OPTION_FIELDS = {
    "auto.snapshot": ("auto_snapshot", True),
    "vcs.ignore.lib": ("vcs_ignore_lib", True),
    "vcs.ignore.src": ("vcs_ignore_src", False),
}


def _call_flag(fn, *args) -> bool:
    try:
        return bool(fn(*args))
    except ToolError as e:
        logger.error(str(e))
        return False


def packrat_context(tool: DependencyTool, project_dir: Optional[str]) -> PackratContext:
    """Compute the Packrat context for ``project_dir`` (None: no project open)."""
    context = PackratContext()
    context.available = _call_flag(tool.is_installed)
    context.applicable = context.available and project_dir is not None

    if context.applicable:
        context.packified = _call_flag(tool.check_packified, project_dir)
        if context.packified:
            context.mode_on = _call_flag(tool.is_mode_on, project_dir)

    return context


def copy_option(raw: Dict[str, Any], option_name: str, default: bool) -> bool:
    """Read a boolean option, falling back to ``default`` if missing or malformed.

    jsonlite may wrap scalars in one-element arrays; those are unwrapped.
    """
    value = raw.get(option_name, default)
    if isinstance(value, list) and len(value) == 1:
        value = value[0]
    if not isinstance(value, bool):
        logger.error(f"Packrat option '{option_name}' is not a logical value: {value!r}")
        return default
    return value


def packrat_options(
    tool: DependencyTool,
    project_dir: Optional[str],
    context: Optional[PackratContext] = None,
) -> PackratOptions:
    """Read the project's options, or the defaults for non-Packrat projects."""
    if context is None:
        context = packrat_context(tool, project_dir)
    if not context.packified:
        return PackratOptions()

    try:
        raw = tool.get_options(project_dir)
    except ToolError as e:
        logger.error(str(e))
        return PackratOptions()

    values = {
        json_name: copy_option(raw, option_name, default)
        for option_name, (json_name, default) in OPTION_FIELDS.items()
    }
    return PackratOptions(**values)
