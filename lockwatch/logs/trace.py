"""NDJSON trace of reconciliation activity.

Each line records one transition the engine made: a stored hash changing,
an auto-snapshot starting, queueing or finishing, a Packrat action hook
firing, or a client refresh being emitted. On close a summary with
per-type counts is written to ``<trace>.summary.json``.
"""

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, TextIO


class TraceEventType(str, Enum):
    """Event types written to the trace."""
    HASH_UPDATE = "hash.update"
    SNAPSHOT_START = "snapshot.start"
    SNAPSHOT_QUEUED = "snapshot.queued"
    SNAPSHOT_SKIPPED = "snapshot.skipped"
    SNAPSHOT_FINISH = "snapshot.finish"
    ACTION_START = "action.start"
    ACTION_FINISH = "action.finish"
    CLIENT_EVENT = "client.event"
    ERROR = "error"
    WARNING = "warning"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool, type(None), list, dict)):
        return value
    return str(value)


@dataclass
class TraceEvent:
    """One trace line."""
    timestamp: str
    event_type: str
    project: str
    payload: Dict[str, Any]

    def to_ndjson(self) -> str:
        return json.dumps(
            {"ts": self.timestamp, "type": self.event_type, "project": self.project, "payload": self.payload},
            separators=(',', ':'),
        )


@dataclass
class TraceSummary:
    """Counts per event type, plus the time span covered."""
    project: str
    counts: Counter = field(default_factory=Counter)
    first_timestamp: Optional[str] = None
    last_timestamp: Optional[str] = None

    def record(self, event: TraceEvent) -> None:
        self.counts[event.event_type] += 1
        self.first_timestamp = self.first_timestamp or event.timestamp
        self.last_timestamp = event.timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project": self.project,
            "total_events": sum(self.counts.values()),
            "event_counts": dict(self.counts),
            "first_timestamp": self.first_timestamp,
            "last_timestamp": self.last_timestamp,
            "snapshots": self.counts[TraceEventType.SNAPSHOT_START.value],
            "errors": self.counts[TraceEventType.ERROR.value],
            "warnings": self.counts[TraceEventType.WARNING.value],
        }


class TraceLogger:
    """Appends trace events for one project to an NDJSON file.

    Args:
        project: Project directory the events belong to
        trace_path: NDJSON file, appended to across runs
    """

    def __init__(self, project: str, trace_path: str):
        self.project = project
        self.trace_path = Path(trace_path)
        self.summary_path = self.trace_path.with_name(self.trace_path.name + ".summary.json")
        self.summary = TraceSummary(project=project)

        self.trace_path.parent.mkdir(parents=True, exist_ok=True)
        self._file: Optional[TextIO] = None

    def log(self, event_type: str, payload: Dict[str, Any]) -> None:
        event = TraceEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event_type=_jsonable(event_type),
            project=self.project,
            payload={key: _jsonable(value) for key, value in payload.items()},
        )
        self.summary.record(event)

        sink = self._sink()
        sink.write(event.to_ndjson() + "\n")
        sink.flush()

    def _sink(self) -> TextIO:
        if self._file is None:
            self._file = open(self.trace_path, 'a', encoding='utf-8')
        return self._file

    def write_summary(self) -> None:
        self.summary_path.write_text(json.dumps(self.summary.to_dict(), indent=2), encoding='utf-8')

    def close(self) -> None:
        """Write the summary and release the trace file."""
        self.write_summary()
        if self._file is not None:
            self._file.close()
            self._file = None
