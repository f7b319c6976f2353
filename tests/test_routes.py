import pytest
from fastapi.testclient import TestClient

from api.main import app
import api.routes as routes
from mood.models import DetectionMode, DetectionResult, FaceDetails, HandDetails, LiveStatus, MoodRecord
from mood.sink import ResultSink


@pytest.fixture(autouse=True)
def clean_state():
    routes.store.clear()
    routes.live_session["tracker"] = None
    yield
    routes.store.clear()
    routes.live_session["tracker"] = None


def _entry(mood="happy", **extra):
    body = {
        "mood": mood,
        "notes": "",
        "emotionScores": {"neutral": 0.1, "happy": 0.6, "sad": 0.1, "angry": 0.1, "surprised": 0.1},
        "faceDetails": {"facesDetected": 1, "keypoints": 468},
        "handDetails": {"handsDetected": 0},
    }
    body.update(extra)
    return body


def test_health():
    client = TestClient(app)
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_log_then_history():
    client = TestClient(app)
    r = client.post("/api/moods/log", json=_entry(notes="after lunch"))
    assert r.status_code == 200
    saved = r.json()
    assert saved["id"]
    assert saved["emotionScores"]["happy"] == 0.6

    r = client.get("/api/moods/history")
    assert r.status_code == 200
    history = r.json()
    assert history[0]["id"] == saved["id"]
    assert history[0]["mood"] == "happy"
    assert history[0]["notes"] == "after lunch"


def test_history_capped_and_newest_first():
    client = TestClient(app)
    ids = [client.post("/api/moods/log", json=_entry()).json()["id"] for _ in range(25)]
    history = client.get("/api/moods/history").json()
    assert len(history) == 20
    assert history[0]["id"] == ids[-1]
    assert [h["id"] for h in history] == ids[::-1][:20]


def test_explicit_timestamp_orders_history():
    client = TestClient(app)
    client.post("/api/moods/log", json=_entry("sad", timestamp="2030-01-01T00:00:00Z"))
    client.post("/api/moods/log", json=_entry("angry", timestamp="2020-01-01T00:00:00Z"))
    history = client.get("/api/moods/history").json()
    assert [h["mood"] for h in history] == ["sad", "angry"]


def test_log_rejects_missing_mood():
    client = TestClient(app)
    r = client.post("/api/moods/log", json={"notes": "no mood"})
    assert r.status_code == 422
    assert client.get("/api/moods/history").json() == []


def test_log_store_failure(monkeypatch):
    def broken_add(entry):
        raise RuntimeError("disk full")

    monkeypatch.setattr(routes.store, "add", broken_add)
    client = TestClient(app)
    r = client.post("/api/moods/log", json=_entry())
    assert r.status_code == 500
    assert r.json() == {"message": "Error saving mood log", "error": "disk full"}


class DummyTracker:
    """Stands in for LiveMoodTracker without touching camera or models."""
    deny = False
    save_ok = True

    def __init__(self, settings):
        self.settings = settings
        self.sink = ResultSink()
        self._run = False

    @property
    def running(self):
        return self._run

    async def start(self):
        if DummyTracker.deny:
            raise PermissionError("Camera access denied")
        self._run = True
        self.sink.notify("warning", "AI detection couldn't be loaded: face: offline. Using basic mode.")

    async def stop(self):
        self._run = False

    def status(self):
        return LiveStatus(running=self._run, mode=DetectionMode.FALLBACK, last_result=self.sink.latest)

    async def save(self, notes=""):
        if not DummyTracker.save_ok:
            self.sink.notify("error", "Failed to save: offline")
            return None
        result = self.sink.latest
        return MoodRecord(id="r1", date=result.timestamp, timestamp=result.timestamp,
                          mood=result.dominant_mood, notes=notes)


@pytest.fixture
def dummy_tracker(monkeypatch):
    DummyTracker.deny = False
    DummyTracker.save_ok = True
    monkeypatch.setattr(routes, "LiveMoodTracker", DummyTracker)
    return DummyTracker


def _publish(tracker, mood="sad"):
    dist = {"neutral": 0.1, "happy": 0.1, "sad": 0.1, "angry": 0.1, "surprised": 0.1}
    dist[mood] = 0.6
    tracker.sink.publish(DetectionResult(
        dominant_mood=mood, distribution=dist,
        face_details=FaceDetails(fallback_mode=True, faces_detected=1),
        hand_details=HandDetails(fallback_mode=True),
        mode=DetectionMode.FALLBACK,
    ))


def test_live_lifecycle(dummy_tracker):
    client = TestClient(app)
    assert client.post("/live/start").json()["status"] == "started"
    assert client.post("/live/start").json()["status"] == "already_running"

    body = client.get("/live/status").json()
    assert body["running"] is True
    assert body["mode"] == "fallback"
    assert body["notifications"][0]["level"] == "warning"
    # notifications are delivered once
    assert client.get("/live/status").json()["notifications"] == []

    assert client.post("/live/stop").json()["status"] == "stopped"
    assert client.post("/live/stop").json()["status"] == "not_running"


def test_live_status_without_session():
    client = TestClient(app)
    body = client.get("/live/status").json()
    assert body["running"] is False
    assert body["notifications"] == []


def test_live_start_camera_denied(dummy_tracker):
    dummy_tracker.deny = True
    client = TestClient(app)
    r = client.post("/live/start")
    assert r.status_code == 403
    assert "denied" in r.json()["detail"]
    assert routes.live_session["tracker"] is None


def test_live_save(dummy_tracker):
    client = TestClient(app)
    assert client.post("/live/save", json={"notes": "x"}).status_code == 409

    client.post("/live/start")
    r = client.post("/live/save", json={"notes": "x"})
    assert r.status_code == 409
    assert r.json()["detail"] == "No mood detected yet"

    _publish(routes.live_session["tracker"], "sad")
    r = client.post("/live/save", json={"notes": "tired"})
    assert r.status_code == 200
    assert r.json()["mood"] == "sad"
    assert r.json()["notes"] == "tired"


def test_live_save_failure(dummy_tracker):
    dummy_tracker.save_ok = False
    client = TestClient(app)
    client.post("/live/start")
    _publish(routes.live_session["tracker"])
    r = client.post("/live/save", json={})
    assert r.status_code == 502
    assert r.json()["detail"] == "Failed to save: offline"
