import asyncio
import threading

import numpy as np
import pytest

from mood.capture import CaptureSession, CaptureState
from mood.config import Settings
from mood.detectors import FaceDetector, FaceObservation, HandDetector, HandObservation
from mood.loader import ModelBundle, ModelLoader
from mood.models import DetectionMode, ModelState
from mood.scheduler import DetectionScheduler, SchedulerState
from mood.scoring import DEFAULT_DISTRIBUTION
from mood.sink import ResultSink


class ScriptedFace(FaceDetector):
    """Returns the given landmark meshes, optionally after a delay."""
    def __init__(self, meshes=(), delay=0.0, error=None):
        self.meshes = list(meshes)
        self.delay = delay
        self.error = error
        self.active = 0
        self.max_active = 0
        self.calls = 0

    async def estimate(self, frame):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return [FaceObservation(landmarks=m, bounding_box={"topLeft_x": 0.0}) for m in self.meshes]
        finally:
            self.active -= 1

    def is_available(self): return True
    def get_name(self): return "scripted_face"


class OneHand(HandDetector):
    async def estimate(self, frame):
        return [HandObservation(landmarks=np.zeros((21, 3)), handedness="Left", confidence=0.8)]
    def is_available(self): return True
    def get_name(self): return "one_hand"


def _loaded(face):
    return ModelBundle(face=face, hand=OneHand(), state=ModelState.LOADED)


async def _scheduler(settings, models=None, sink=None):
    capture = CaptureSession(settings)
    await capture.open()
    sink = sink or ResultSink()
    return DetectionScheduler(settings, capture, sink, models=models, rng=np.random.default_rng(0))


def test_fallback_when_models_missing(dummy_camera):
    async def main():
        sched = await _scheduler(Settings())
        return sched, await sched.detect_once()

    sched, result = asyncio.run(main())
    assert sched.mode == DetectionMode.FALLBACK
    assert result.mode == DetectionMode.FALLBACK
    assert sum(result.distribution.values()) == pytest.approx(1.0)
    assert result.face_details.fallback_mode and result.hand_details.fallback_mode


def test_ai_cycle_scores_first_face(dummy_camera, face_mesh):
    async def main():
        sched = await _scheduler(Settings(SHOW_LANDMARKS=True), models=_loaded(ScriptedFace([face_mesh()])))
        return await sched.detect_once()

    result = asyncio.run(main())
    assert result.mode == DetectionMode.AI
    assert result.dominant_mood == "happy"
    assert result.face_details.faces_detected == 1
    assert result.face_details.keypoints == 468
    assert not result.face_details.fallback_mode
    assert result.hand_details.handedness == ["Left"]
    assert result.hand_details.keypoints == [21]
    assert result.diagnostics.features.mouth_ratio == pytest.approx(6.0)
    assert result.diagnostics.raw_scores["happy"] == pytest.approx(0.7)
    assert len(result.diagnostics.face_landmarks) == 468
    assert len(result.diagnostics.hand_landmarks) == 1


def test_no_face_keeps_previous_distribution(dummy_camera, face_mesh):
    async def main():
        face = ScriptedFace([])
        sched = await _scheduler(Settings(), models=_loaded(face))
        first = await sched.detect_once()
        face.meshes = [face_mesh()]
        second = await sched.detect_once()
        face.meshes = []
        third = await sched.detect_once()
        return first, second, third

    first, second, third = asyncio.run(main())
    assert first.distribution == DEFAULT_DISTRIBUTION
    assert first.face_details.faces_detected == 0
    assert third.distribution == second.distribution
    assert third.mode == DetectionMode.AI


def test_ai_failure_recovers_with_fallback(dummy_camera):
    async def main():
        face = ScriptedFace(error=RuntimeError("inference blew up"))
        sched = await _scheduler(Settings(), models=_loaded(face))
        task = sched.tick()
        result = await task
        return sched, result

    sched, result = asyncio.run(main())
    assert result.mode == DetectionMode.FALLBACK
    assert "inference blew up" in result.diagnostics.error
    assert not sched.in_flight
    assert sched.sink.latest is result


def test_tick_noop_until_capture_ready(dummy_camera):
    async def main():
        settings = Settings()
        sched = DetectionScheduler(settings, CaptureSession(settings), ResultSink())
        return sched, sched.tick()

    sched, task = asyncio.run(main())
    assert task is None
    assert sched.ticks == 1 and sched.ticks_skipped == 0
    assert sched.sink.latest is None


def test_overlapping_tick_is_skipped(dummy_camera, face_mesh):
    async def main():
        face = ScriptedFace([face_mesh()], delay=0.05)
        sched = await _scheduler(Settings(), models=_loaded(face))
        first = sched.tick()
        await asyncio.sleep(0)
        assert sched.in_flight
        second = sched.tick()
        await first
        third = sched.tick()
        await third
        return sched, face, first, second

    sched, face, first, second = asyncio.run(main())
    assert first is not None and second is None
    assert sched.ticks_skipped == 1
    assert face.calls == 2
    assert face.max_active == 1


def test_rapid_timer_never_overlaps_cycles(dummy_camera, face_mesh):
    async def main():
        face = ScriptedFace([face_mesh()], delay=0.03)
        sched = await _scheduler(Settings(DETECTION_INTERVAL_MS=2), models=_loaded(face))
        results = sched.sink.subscribe()
        sched.start()
        await asyncio.sleep(0.3)
        await sched.stop()
        return sched, face, results

    sched, face, results = asyncio.run(main())
    assert face.max_active == 1
    assert face.calls >= 2
    assert sched.ticks_skipped > 0
    assert not results.empty()
    assert sched.state == SchedulerState.IDLE


def test_degraded_session_always_simulates(dummy_camera):
    release = threading.Event()

    def slow_hand():
        release.wait(2)
        return OneHand()

    async def main():
        settings = Settings(MODEL_LOAD_TIMEOUT=0.05)
        loader = ModelLoader(settings, face_factory=lambda: ScriptedFace(), hand_factory=slow_hand)
        try:
            bundle = await loader.load()
        finally:
            release.set()
        sched = await _scheduler(settings)
        sched.attach_models(bundle)
        modes = []
        for _ in range(5):
            modes.append((await sched.tick()).mode)
        return bundle, modes

    bundle, modes = asyncio.run(main())
    assert bundle.degraded
    assert modes == [DetectionMode.FALLBACK] * 5


def test_stop_cancels_and_releases_capture(dummy_camera, face_mesh):
    async def main():
        face = ScriptedFace([face_mesh()], delay=1.0)
        sched = await _scheduler(Settings(), models=_loaded(face))
        sched.start()
        await asyncio.sleep(0.05)
        assert sched.state == SchedulerState.TICKING
        assert sched.in_flight
        await sched.stop()
        await sched.stop()
        return sched

    sched = asyncio.run(main())
    assert sched.state == SchedulerState.IDLE
    assert not sched.in_flight
    assert sched.capture.handle.state == CaptureState.RELEASED
    assert dummy_camera.created[0].releases == 1
    assert sched.sink.latest is None


def test_sink_fault_is_reported_as_fatal(dummy_camera):
    class BrokenSink(ResultSink):
        def publish(self, result):
            raise RuntimeError("ui gone")

    async def main():
        sched = await _scheduler(Settings(), sink=BrokenSink())
        task = sched.tick()
        await asyncio.gather(task, return_exceptions=True)
        await asyncio.sleep(0)
        return sched

    sched = asyncio.run(main())
    assert not sched.in_flight
    assert sched.sink.notifications[-1].level == "fatal"
    assert "ui gone" in sched.sink.notifications[-1].message


def test_fallback_cycle_refreshes_last_frame(dummy_camera):
    async def main():
        sched = await _scheduler(Settings())
        opened = sched.capture.handle.last_frame
        await sched.detect_once()
        return sched, opened

    sched, opened = asyncio.run(main())
    assert dummy_camera.created[0].reads == 2
    assert sched.capture.handle.last_frame is not opened
