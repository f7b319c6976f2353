"""
Asynchronous acquisition of the face and hand detection models.

Models load one after another, each in a worker thread bounded by
MODEL_LOAD_TIMEOUT. Any failure leaves the session degraded: the returned
bundle carries null detectors and the scheduler simulates for the rest of the
session. There are no retries.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from mood.config import Settings
from mood.detectors import (
    FaceDetector,
    HandDetector,
    MediaPipeFaceDetector,
    MediaPipeHandDetector,
    NullFaceDetector,
    NullHandDetector,
)
from mood.errors import ModelLoadError
from mood.models import ModelState

logger = logging.getLogger(__name__)


@dataclass
class ModelBundle:
    face: FaceDetector = field(default_factory=NullFaceDetector)
    hand: HandDetector = field(default_factory=NullHandDetector)
    state: ModelState = ModelState.UNLOADED
    error: Optional[str] = None

    @property
    def ai_ready(self) -> bool:
        return (self.state == ModelState.LOADED
                and self.face.is_available() and self.hand.is_available())

    @property
    def degraded(self) -> bool:
        return self.state == ModelState.FAILED

    def close(self) -> None:
        for det in (self.face, self.hand):
            try:
                det.close()
            except Exception:
                logger.exception(f"[loader] failed to close {det.get_name()}")


class ModelLoader:
    """Loads the two detectors once; exclusively owns them until handed out."""

    def __init__(self,
                 settings: Settings,
                 face_factory: Optional[Callable[[], FaceDetector]] = None,
                 hand_factory: Optional[Callable[[], HandDetector]] = None):
        self.s = settings
        self.timeout = float(settings.MODEL_LOAD_TIMEOUT)
        self._face_factory = face_factory or (lambda: MediaPipeFaceDetector(
            max_faces=settings.MAX_FACES))
        self._hand_factory = hand_factory or (lambda: MediaPipeHandDetector(
            max_hands=settings.MAX_HANDS,
            load_confidence=settings.HAND_LOAD_CONFIDENCE,
            min_confidence=settings.HAND_DETECTION_CONFIDENCE,
        ))
        self._state = ModelState.UNLOADED
        self._bundle: Optional[ModelBundle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ModelState:
        return self._state

    async def _load_one(self, resource: str, factory: Callable):
        logger.debug(f"[loader] loading {resource} model timeout={self.timeout}s")
        try:
            # the worker thread is not interrupted on timeout; its result is dropped
            det = await asyncio.wait_for(asyncio.to_thread(factory), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ModelLoadError(resource, f"load timeout after {self.timeout:g}s")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ModelLoadError(resource, str(e) or type(e).__name__) from e
        logger.debug(f"[loader] {resource} model loaded ({det.get_name()})")
        return det

    async def load(self) -> ModelBundle:
        """
        Load face then hand model.

        Returns:
            ModelBundle: state LOADED with real detectors, or FAILED with null
            detectors and the failure message.
        """
        if self._bundle is not None:
            return self._bundle

        self._state = ModelState.LOADING
        face: Optional[FaceDetector] = None
        try:
            face = await self._load_one("face", self._face_factory)
            hand = await self._load_one("hand", self._hand_factory)
        except ModelLoadError as e:
            logger.warning(f"[loader] model load failed, running in fallback mode: {e}")
            if face is not None:
                face.close()
            self._state = ModelState.FAILED
            self._bundle = ModelBundle(state=ModelState.FAILED, error=str(e))
            return self._bundle
        except asyncio.CancelledError:
            logger.debug("[loader] load cancelled")
            if face is not None:
                face.close()
            self._state = ModelState.UNLOADED
            raise

        self._state = ModelState.LOADED
        self._bundle = ModelBundle(face=face, hand=hand, state=ModelState.LOADED)
        return self._bundle

    def start(self) -> asyncio.Task:
        """Run load() as a task that cancel() can stop."""
        if self._task is None or self._task.cancelled():
            self._task = asyncio.create_task(self.load())
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def reset(self) -> None:
        """Forget the loaded bundle so the next start() loads fresh detectors.

        The caller owns (and closes) any bundle already handed out.
        """
        self.cancel()
        self._task = None
        self._bundle = None
        self._state = ModelState.UNLOADED
