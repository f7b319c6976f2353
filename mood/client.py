"""
HTTP client for the mood persistence API.
"""
from __future__ import annotations
import logging
from typing import List, Optional

import httpx

from mood.errors import PersistenceError
from mood.models import MoodLogCreate, MoodRecord

logger = logging.getLogger(__name__)


def _server_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or "Unknown error"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or "Unknown error")
    return "Unknown error"


class MoodApiClient:
    """Talks to ``/api/moods``; every failure surfaces as PersistenceError."""

    def __init__(self, base_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout,
                                 transport=self._transport)

    async def log_mood(self, payload: MoodLogCreate) -> MoodRecord:
        body = payload.model_dump(mode="json", by_alias=True)
        logger.debug(f"[client] POST /api/moods/log mood={payload.mood}")
        try:
            async with self._client() as client:
                resp = await client.post("/api/moods/log", json=body)
        except httpx.HTTPError as e:
            raise PersistenceError(f"Failed to save mood: {e}") from e
        if resp.status_code != 200:
            raise PersistenceError(f"Failed to save: {_server_message(resp)}", resp.status_code)
        return MoodRecord.model_validate(resp.json())

    async def fetch_history(self) -> List[MoodRecord]:
        try:
            async with self._client() as client:
                resp = await client.get("/api/moods/history")
        except httpx.HTTPError as e:
            raise PersistenceError(f"Failed to load mood history: {e}") from e
        if resp.status_code != 200:
            raise PersistenceError(f"Failed to load mood history: {_server_message(resp)}",
                                   resp.status_code)
        return [MoodRecord.model_validate(item) for item in resp.json()]
