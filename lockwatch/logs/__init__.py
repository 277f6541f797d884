"""Trace logging for lockwatch reconciliation."""

from .trace import (
    TraceLogger,
    TraceEventType,
    TraceEvent,
    TraceSummary,
)

__all__ = [
    "TraceLogger",
    "TraceEventType",
    "TraceEvent",
    "TraceSummary",
]
