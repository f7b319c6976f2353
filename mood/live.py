# mood/live.py
"""
Live (real-time) mood tracking session.

Wires the pieces together for one camera session:
- ModelLoader acquires the face/hand detectors in the background
- CaptureSession opens the camera at the same time (it never waits on models)
- DetectionScheduler ticks every DETECTION_INTERVAL_MS once the stream is ready,
  simulating until models arrive and for good if they fail to load
- ResultSink receives every DetectionResult and handles saves
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from mood.capture import CaptureSession
from mood.client import MoodApiClient
from mood.config import Settings
from mood.loader import ModelBundle, ModelLoader
from mood.models import LiveStatus, MoodRecord
from mood.scheduler import DetectionScheduler
from mood.sink import ResultSink

logger = logging.getLogger(__name__)


class LiveMoodTracker:
    """Owns one capture + detection session and exposes start/stop/status."""
    def __init__(self, settings: Settings,
                 loader: Optional[ModelLoader] = None,
                 capture: Optional[CaptureSession] = None,
                 sink: Optional[ResultSink] = None):
        self.s = settings
        self.sink = sink or ResultSink(MoodApiClient(settings.MOOD_API_URL),
                                       history_limit=settings.HISTORY_LIMIT)
        self.capture = capture or CaptureSession(settings)
        self.loader = loader or ModelLoader(settings)
        self.scheduler = DetectionScheduler(settings, self.capture, self.sink)
        self._run = False
        self._load_task: Optional[asyncio.Task] = None
        self._started_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._run

    # ---- lifecycle ----
    async def start(self) -> None:
        """
        Start model loading and open the camera.

        Raises:
            PermissionError: camera access denied; the session is torn down.
        """
        if self._run:
            return
        self._run = True
        self._started_at = time.time()
        logger.debug("[live] starting session")

        self._load_task = self.loader.start()
        self._load_task.add_done_callback(self._models_ready)
        try:
            await self.capture.open(self.s.capture_constraints())
        except PermissionError as e:
            self.sink.notify("fatal", str(e))
            await self.stop()
            raise
        self.scheduler.start()

    def _models_ready(self, task: asyncio.Task) -> None:
        # a stopped session's load never attaches
        if task.cancelled() or task is not self._load_task:
            return
        if task.exception() is not None:
            # load() absorbs ModelLoadError; anything else still means no models
            logger.error("[live] model loader crashed", exc_info=task.exception())
            bundle = ModelBundle(state=self.loader.state, error=str(task.exception()))
        else:
            bundle = task.result()
        self.scheduler.attach_models(bundle)
        if bundle.ai_ready:
            self.sink.notify("info", "AI models loaded")
        else:
            self.sink.notify("warning", f"AI detection couldn't be loaded: {bundle.error}. Using basic mode.")

    async def wait_models(self) -> Optional[ModelBundle]:
        if self._load_task is None:
            return None
        bundle = await self._load_task
        # let the done-callback attach it
        await asyncio.sleep(0)
        return bundle

    async def stop(self) -> None:
        if not self._run:
            return
        self._run = False
        load_task, self._load_task = self._load_task, None
        self.loader.cancel()
        await self.scheduler.stop()
        self.capture.close()

        bundles = [self.scheduler.models]
        if load_task is not None and load_task.done() and not load_task.cancelled() \
                and load_task.exception() is None and load_task.result() is not self.scheduler.models:
            # finished loading but not attached yet
            bundles.append(load_task.result())
        for bundle in bundles:
            bundle.close()
        # closed detectors are never reused: the next start() loads again
        self.scheduler.attach_models(ModelBundle())
        self.loader.reset()
        logger.debug("[live] session stopped")

    # ---- queries / actions ----
    def status(self) -> LiveStatus:
        handle = self.capture.handle
        return LiveStatus(
            running=self._run,
            video_ready=self.capture.is_ready,
            models_state=self.loader.state,
            degraded=self.scheduler.models.degraded,
            mode=self.scheduler.mode if handle is not None else None,
            detecting=self.scheduler.in_flight,
            ticks=self.scheduler.ticks,
            ticks_skipped=self.scheduler.ticks_skipped,
            last_result=self.sink.latest,
        )

    async def save(self, notes: str = "") -> Optional[MoodRecord]:
        return await self.sink.save(notes)
