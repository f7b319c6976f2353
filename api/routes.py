"""
REST endpoints: mood persistence and live session control.
"""
from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import logging

from mood.config import Settings
from mood.live import LiveMoodTracker
from mood.models import LiveStatus, MoodLogCreate
from api.store import MoodStore


router = APIRouter()
settings = Settings()
store = MoodStore()
logger = logging.getLogger(__name__)

live_session = {"tracker": None}


class SaveRequest(BaseModel):
    notes: str = ""


@router.post("/api/moods/log")
async def add_mood_log(entry: MoodLogCreate):
    """
    Store a mood snapshot.

    Args:
        entry: mood, notes, emotionScores, faceDetails, handDetails, timestamp.

    Returns:
        JSONResponse: The stored record including its server-assigned id.
    """
    logger.debug(f"[api] /api/moods/log mood={entry.mood}")
    try:
        record = store.add(entry)
    except Exception as e:
        logger.exception("[api] saving mood log failed")
        return JSONResponse(status_code=500, content={"message": "Error saving mood log", "error": str(e)})
    return JSONResponse(record.model_dump(mode="json", by_alias=True))


@router.get("/api/moods/history")
async def mood_history():
    """
    Most recent mood records, newest first, at most HISTORY_LIMIT.
    """
    try:
        records = store.history(settings.HISTORY_LIMIT)
    except Exception as e:
        logger.exception("[api] fetching mood history failed")
        return JSONResponse(status_code=500, content={"message": "Error fetching mood history", "error": str(e)})
    return JSONResponse([r.model_dump(mode="json", by_alias=True) for r in records])


@router.post("/live/start")
async def live_start():
    tracker = live_session["tracker"]
    if tracker is not None and tracker.running:
        return {"status": "already_running"}
    tracker = LiveMoodTracker(settings)
    live_session["tracker"] = tracker
    try:
        await tracker.start()
    except PermissionError as e:
        live_session["tracker"] = None
        raise HTTPException(status_code=403, detail=str(e))
    return {"status": "started"}

@router.get("/live/status")
async def live_status():
    tracker = live_session["tracker"]
    if tracker is None:
        body = LiveStatus(running=False).model_dump(mode="json")
        body["notifications"] = []
        return body
    body = tracker.status().model_dump(mode="json", by_alias=True)
    body["notifications"] = [n.model_dump(mode="json") for n in tracker.sink.drain_notifications()]
    return body

@router.post("/live/save")
async def live_save(req: SaveRequest):
    tracker = live_session["tracker"]
    if tracker is None or not tracker.running:
        raise HTTPException(status_code=409, detail="No live session running")
    if tracker.sink.latest is None:
        raise HTTPException(status_code=409, detail="No mood detected yet")
    record = await tracker.save(req.notes)
    if record is None:
        errors = [n.message for n in tracker.sink.notifications if n.level == "error"]
        raise HTTPException(status_code=502, detail=errors[-1] if errors else "Failed to save mood")
    return record.model_dump(mode="json", by_alias=True)

@router.post("/live/stop")
async def live_stop():
    tracker = live_session["tracker"]
    if tracker is None or not tracker.running:
        return {"status": "not_running"}
    await tracker.stop()
    return {"status": "stopped"}
