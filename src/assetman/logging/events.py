"""JSONL log of manager events and served tool requests."""

from __future__ import annotations

import json
from collections import deque
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

# tool arguments that are small, non-sensitive and useful when replaying a session
_KEPT_ARGUMENTS = frozenset({"identifier", "path", "force", "since", "limit", "kind"})


@dataclass(slots=True, frozen=True)
class EventRecord:
    """One manager notification (index, hash, compile, change, error) or tool request."""

    timestamp: str
    kind: str
    name: str
    ok: bool
    message: str | None
    metadata: dict[str, object]


def utc_timestamp() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def summarize_tool_arguments(arguments: Mapping[str, object]) -> dict[str, object]:
    """Keep identifiers and request paths; reduce asset options to their shape.

    Options can carry arbitrary tag attributes, so only the option names and
    the number of include patterns are recorded.
    """
    summary: dict[str, object] = {}
    for key in sorted(arguments):
        value = arguments[key]
        if key in _KEPT_ARGUMENTS and isinstance(value, (str, int, bool)):
            summary[key] = value
        elif key == "options" and isinstance(value, Mapping):
            summary["option_names"] = sorted(str(name) for name in value)
            include = value.get("include")
            if isinstance(include, str):
                summary["include_count"] = 1
            elif isinstance(include, list):
                summary["include_count"] = len(include)
        else:
            summary[f"{key}_type"] = type(value).__name__
    return summary


class JsonlEventLogger:
    """Append-only event log with a bounded, filtered reader."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: EventRecord) -> None:
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(asdict(event), sort_keys=True))
            handle.write("\n")

    def read(
        self, since: str | None = None, limit: int = 50, kind: str | None = None
    ) -> list[dict[str, object]]:
        """Return the newest ``limit`` events at or after ``since``, oldest first.

        Lines that are not valid JSON objects are skipped, so a log cut short
        by a crash stays readable.
        """
        if limit < 1 or not self._path.exists():
            return []
        newest: deque[dict[str, object]] = deque(maxlen=limit)
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                record = _parse_line(line)
                if record is None:
                    continue
                if kind is not None and record.get("kind") != kind:
                    continue
                if since is not None:
                    stamp = record.get("timestamp")
                    if not isinstance(stamp, str) or stamp < since:
                        continue
                newest.append(record)
        return list(newest)


def _parse_line(line: str) -> dict[str, object] | None:
    stripped = line.strip()
    if not stripped:
        return None
    try:
        record = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    return record if isinstance(record, dict) else None
