"""JSONL event streams — one ``{"time": ..., "record": {...}}`` object per line.

Used by the CLI to read events in and write chained events out. Storage
of chained events is left to the surrounding pipeline.
"""

from __future__ import annotations

import json
from typing import IO, Any, Iterable, Iterator


def read_events(handle: IO[str]) -> Iterator[tuple[float, dict[str, Any]]]:
    """Yield ``(time, record)`` pairs. Raises ValueError on malformed lines."""
    for line_num, line in enumerate(handle, 1):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON (line {line_num}): {exc}") from exc
        if not isinstance(data, dict) or "record" not in data or "time" not in data:
            raise ValueError(f"Expected an object with 'time' and 'record' (line {line_num})")
        event_time = data["time"]
        if isinstance(event_time, bool) or not isinstance(event_time, (int, float)):
            raise ValueError(f"'time' must be unix seconds (line {line_num})")
        yield event_time, data["record"]


def write_events(handle: IO[str], events: Iterable[tuple[float, Any]]) -> int:
    """Write ``(time, record)`` pairs as JSONL. Returns the number written."""
    count = 0
    for event_time, record in events:
        handle.write(json.dumps({"time": event_time, "record": record}, ensure_ascii=False) + "\n")
        count += 1
    return count
