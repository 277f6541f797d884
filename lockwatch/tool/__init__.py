"""External dependency tool interface."""

from .base import DependencyTool, OutputCallback
from .packrat import RscriptTool, REQUIRED_PACKRAT_VERSION

__all__ = [
    "DependencyTool",
    "OutputCallback",
    "RscriptTool",
    "REQUIRED_PACKRAT_VERSION",
]
