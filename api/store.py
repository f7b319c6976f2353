"""
In-process mood log store backing the persistence routes.
"""
from __future__ import annotations
import threading
import uuid
from datetime import datetime, timezone
from typing import List

from mood.models import MoodLogCreate, MoodRecord


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class MoodStore:
    """Thread-safe list of records; history is newest-first by timestamp."""
    def __init__(self):
        self._records: List[MoodRecord] = []
        self._lock = threading.Lock()

    def add(self, entry: MoodLogCreate) -> MoodRecord:
        now = datetime.now(timezone.utc)
        data = entry.model_dump()
        data["timestamp"] = _aware(entry.timestamp) if entry.timestamp else now
        record = MoodRecord(id=uuid.uuid4().hex, date=now, **data)
        with self._lock:
            self._records.append(record)
        return record

    def history(self, limit: int = 20) -> List[MoodRecord]:
        with self._lock:
            # insertion order breaks timestamp ties, later first
            ordered = sorted(enumerate(self._records), key=lambda p: (p[1].timestamp, p[0]), reverse=True)
        return [r for _, r in ordered[: max(0, limit)]]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
