# src/lprewards/storage/jsonl.py
from __future__ import annotations

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Mapping

from lprewards.core.events.base import Event


class JsonlEventStore:
    """
    Append-only JSONL event store.

    - One event per line (JSON dict), in publish order.
    - Integers are written as JSON numbers at full precision (scaled values exceed 2**53).
    - fsync on demand for crash safety.
    """

    def __init__(self, *, path: Path, fsync: bool = True) -> None:
        self._path = path
        self._fsync = fsync
        self._fh = None  # lazy open

        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        if self._fh is not None:
            return
        self._fh = self._path.open("a", encoding="utf-8", buffering=1)

    def close(self) -> None:
        if self._fh is None:
            return
        try:
            self._fh.flush()
            if self._fsync:
                os.fsync(self._fh.fileno())
        finally:
            self._fh.close()
            self._fh = None

    def append(self, event: Event) -> None:
        self.open()
        assert self._fh is not None

        line = json.dumps(event_to_dict(event), sort_keys=True, separators=(",", ":"), default=str)
        self._fh.write(line + "\n")
        self._fh.flush()
        if self._fsync:
            os.fsync(self._fh.fileno())

    def iter_events(self) -> list[Mapping[str, Any]]:
        """
        Read all events back as dicts (diagnostics/tests).
        """
        if not self._path.exists():
            return []
        out: list[Mapping[str, Any]] = []
        with self._path.open("r", encoding="utf-8") as fh:
            for line in fh:
                s = line.strip()
                if not s:
                    continue
                out.append(json.loads(s))
        return out


def event_to_dict(event: Event) -> dict[str, Any]:
    d = asdict(event)
    d["event_id"] = str(event.event_id)
    d["timestamp_utc"] = event.timestamp_utc.isoformat()
    # event_type is a ClassVar, asdict() skips it
    d["event_type"] = event.event_type
    return d
