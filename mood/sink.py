"""
Boundary between the detection loop and its consumers.

ResultSink keeps the latest DetectionResult, fans results out to subscriber
queues, carries one-shot notifications, and saves snapshots through the
persistence API into a capped, newest-first history.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional

from mood.client import MoodApiClient
from mood.errors import PersistenceError
from mood.models import DetectionResult, MoodLogCreate, MoodRecord, Notification

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


class ResultSink:
    def __init__(self, client: Optional[MoodApiClient] = None,
                 history_limit: int = 20, queue_size: int = 8):
        self.client = client
        self.latest: Optional[DetectionResult] = None
        self.history: Deque[MoodRecord] = deque(maxlen=history_limit)
        self.notifications: Deque[Notification] = deque(maxlen=50)
        self._queue_size = queue_size
        self._subscribers: List[asyncio.Queue] = []

    # ---- results ----
    def publish(self, result: DetectionResult) -> None:
        self.latest = result
        for q in self._subscribers:
            if q.full():
                # slow consumer: drop its oldest result
                q.get_nowait()
            q.put_nowait(result)

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    # ---- notifications ----
    def notify(self, level: str, message: str) -> Notification:
        note = Notification(level=level, message=message)
        logger.log(_LOG_LEVELS.get(level, logging.INFO), f"[sink] {level}: {message}")
        self.notifications.append(note)
        return note

    def drain_notifications(self) -> List[Notification]:
        out = list(self.notifications)
        self.notifications.clear()
        return out

    # ---- persistence ----
    def snapshot(self, notes: str = "") -> Optional[MoodLogCreate]:
        result = self.latest
        if result is None:
            return None
        return MoodLogCreate(
            mood=result.dominant_mood,
            notes=notes,
            emotion_scores=dict(result.distribution),
            face_details=result.face_details.model_dump(by_alias=True),
            hand_details=result.hand_details.model_dump(by_alias=True),
            timestamp=datetime.now(timezone.utc),
        )

    async def save(self, notes: str = "") -> Optional[MoodRecord]:
        """
        Persist the current mood.

        Returns:
            The stored record, or None when there is nothing to save or the
            API call failed (an error notification is posted in that case).
        """
        payload = self.snapshot(notes)
        if payload is None:
            return None
        if self.client is None:
            self.notify("error", "Failed to save mood: no persistence API configured")
            return None
        try:
            record = await self.client.log_mood(payload)
        except PersistenceError as e:
            logger.exception("[sink] save failed")
            self.notify("error", str(e))
            return None
        self.history.appendleft(record)
        self.notify("info", "Mood saved successfully!")
        return record

    async def refresh_history(self) -> List[MoodRecord]:
        if self.client is None:
            return list(self.history)
        try:
            records = await self.client.fetch_history()
        except PersistenceError as e:
            logger.exception("[sink] history fetch failed")
            self.notify("error", str(e))
            return list(self.history)
        self.history.clear()
        self.history.extend(records[: self.history.maxlen])
        return list(self.history)
