"""
Periodic detection loop.

A fixed-period timer calls tick(). A tick starts a detection cycle only when
the capture stream is live and no other cycle is in flight; overlapping ticks
are skipped, never queued. Each cycle produces exactly one DetectionResult,
model-backed when both detectors are loaded and simulated otherwise.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from enum import Enum
from typing import Callable, Optional

import numpy as np

from mood.capture import CaptureSession
from mood.config import Settings
from mood.errors import DetectionError
from mood.fallback import fallback_details, simulate
from mood.landmarks import LandmarkSet, extract_features
from mood.loader import ModelBundle
from mood.models import (
    CycleDiagnostics,
    DetectionMode,
    DetectionResult,
    EmotionDistribution,
    FaceDetails,
    HandDetails,
)
from mood.scoring import DEFAULT_DISTRIBUTION, dominant_mood, raw_scores, score_emotions
from mood.sink import ResultSink

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    TICKING = "ticking"


class DetectionScheduler:
    def __init__(self,
                 settings: Settings,
                 capture: CaptureSession,
                 sink: ResultSink,
                 models: Optional[ModelBundle] = None,
                 rng: Optional[np.random.Generator] = None,
                 clock: Callable[[], float] = time.time):
        self.s = settings
        self.capture = capture
        self.sink = sink
        self.models = models or ModelBundle()
        self.period = settings.detection_interval
        self.state = SchedulerState.IDLE
        self._rng = rng or np.random.default_rng()
        self._clock = clock
        self._in_flight = False
        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None
        self._last_distribution: Optional[EmotionDistribution] = None
        self.ticks = 0
        self.ticks_skipped = 0
        self.cycles = 0

    # ---- status ----
    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def mode(self) -> DetectionMode:
        return DetectionMode.AI if self.models.ai_ready else DetectionMode.FALLBACK

    def attach_models(self, bundle: ModelBundle) -> None:
        """Install the loader's bundle; takes effect from the next cycle."""
        logger.debug(f"[scheduler] models attached state={bundle.state.value} ai_ready={bundle.ai_ready}")
        self.models = bundle

    # ---- lifecycle ----
    def start(self) -> asyncio.Task:
        if self._timer_task is None or self._timer_task.done():
            self._timer_task = asyncio.create_task(self._run())
        return self._timer_task

    async def _run(self) -> None:
        await self.capture.ready.wait()
        self.state = SchedulerState.ARMED
        logger.debug(f"[scheduler] armed, ticking every {self.period * 1000:.0f}ms")
        self.state = SchedulerState.TICKING
        while True:
            self.tick()
            await asyncio.sleep(self.period)

    async def stop(self) -> None:
        """Cancel the timer and any running cycle, then release the capture device."""
        for task in (self._timer_task, self._cycle_task):
            if task is not None and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._timer_task = None
        self._cycle_task = None
        self._in_flight = False
        self.capture.close()
        self.state = SchedulerState.IDLE
        logger.debug(f"[scheduler] stopped ticks={self.ticks} skipped={self.ticks_skipped} cycles={self.cycles}")

    # ---- ticking ----
    def tick(self) -> Optional[asyncio.Task]:
        """
        Start one detection cycle if allowed.

        Returns:
            The cycle task, or None when the tick was a no-op or skipped.
        """
        self.ticks += 1
        if not self.capture.is_ready:
            return None
        if self._in_flight:
            self.ticks_skipped += 1
            return None
        self._in_flight = True
        try:
            task = asyncio.create_task(self._run_cycle())
        except BaseException:
            self._in_flight = False
            raise
        task.add_done_callback(self._cycle_done)
        self._cycle_task = task
        return task

    async def _run_cycle(self) -> DetectionResult:
        try:
            result = await self.detect_once()
            self.sink.publish(result)
            return result
        finally:
            self._in_flight = False

    def _cycle_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        exc = task.exception()
        logger.error("[scheduler] detection cycle crashed; stopping timer", exc_info=exc)
        self.sink.notify("fatal", f"Detection stopped: {exc}")
        if self._timer_task is not None:
            self._timer_task.cancel()

    # ---- one cycle ----
    async def detect_once(self) -> DetectionResult:
        """Run one detection cycle, recovering AI failures with the simulator."""
        started = time.perf_counter()
        self.cycles += 1
        if not self.models.ai_ready:
            # keep last_frame current for previews; the signal itself is simulated
            await self.capture.read_frame()
            return self._fallback_result(started)
        try:
            return await self._ai_result(started)
        except Exception as e:
            err = e if isinstance(e, DetectionError) else DetectionError(f"{type(e).__name__}: {e}")
            logger.exception(f"[scheduler] AI detection failed, simulating this cycle: {err}")
            return self._fallback_result(started, error=str(err))

    async def _ai_result(self, started: float) -> DetectionResult:
        frame = await self.capture.read_frame()
        if frame is None:
            raise DetectionError("no frame available from capture")

        faces, hands = await asyncio.gather(
            self.models.face.estimate(frame),
            self.models.hand.estimate(frame),
            return_exceptions=True,
        )
        for outcome in (faces, hands):
            if isinstance(outcome, BaseException):
                raise outcome

        diagnostics = CycleDiagnostics()
        if faces:
            first = faces[0]
            landmarks = LandmarkSet(first.landmarks)
            features = extract_features(landmarks)
            distribution = score_emotions(features, self._rng)
            diagnostics.features = features
            diagnostics.raw_scores = raw_scores(features) if features is not None else None
            if self.s.SHOW_LANDMARKS:
                diagnostics.face_landmarks = landmarks.to_list()
            face_details = FaceDetails(
                faces_detected=len(faces),
                keypoints=len(landmarks),
                bounding_box=first.bounding_box,
                confidence=first.confidence,
            )
        else:
            # no face: keep the last reading
            distribution = dict(self._last_distribution or DEFAULT_DISTRIBUTION)
            face_details = FaceDetails()

        hand_details = HandDetails(
            hands_detected=len(hands),
            handedness=[h.handedness for h in hands],
            keypoints=[len(h.landmarks) for h in hands],
            confidence=[h.confidence for h in hands],
        )
        if self.s.SHOW_LANDMARKS and hands:
            diagnostics.hand_landmarks = [LandmarkSet(h.landmarks).to_list() for h in hands]
        return self._build(distribution, face_details, hand_details, DetectionMode.AI, diagnostics, started)

    def _fallback_result(self, started: float, error: Optional[str] = None) -> DetectionResult:
        distribution = simulate(int(self._clock() * 1000), self._rng)
        face_details, hand_details = fallback_details(self._rng)
        return self._build(distribution, face_details, hand_details, DetectionMode.FALLBACK,
                           CycleDiagnostics(error=error), started)

    def _build(self, distribution: EmotionDistribution, face_details: FaceDetails,
               hand_details: HandDetails, mode: DetectionMode,
               diagnostics: CycleDiagnostics, started: float) -> DetectionResult:
        diagnostics.duration_ms = (time.perf_counter() - started) * 1000.0
        self._last_distribution = distribution
        return DetectionResult(
            dominant_mood=dominant_mood(distribution),
            distribution=distribution,
            face_details=face_details,
            hand_details=hand_details,
            mode=mode,
            diagnostics=diagnostics,
        )
