"""
Capture device ownership.

CaptureSession is the only component that opens or releases the camera. A
session holds at most one CaptureHandle; opening again releases the previous
one first.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

import cv2
import numpy as np

from mood.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 640
DEFAULT_HEIGHT = 480
MAX_FAILED_READS = 30       # consecutive failed reads before the stream counts as ended


class CaptureState(str, Enum):
    REQUESTING = "requesting"
    ACTIVE = "active"
    RELEASED = "released"


def _ideal(constraints: dict, key: str, default: int) -> int:
    value = constraints.get(key, default)
    if isinstance(value, dict):
        value = value.get("ideal", default)
    return int(value or default)


class CaptureHandle:
    """One open device stream."""

    def __init__(self, device, width: int, height: int):
        self.device = device
        self.width = width
        self.height = height
        self.state = CaptureState.REQUESTING
        self.last_frame: Optional[np.ndarray] = None
        self.failed_reads = 0
        self.ended = False

    @property
    def live(self) -> bool:
        return self.state == CaptureState.ACTIVE and not self.ended and bool(self.device.isOpened())


class CaptureSession:
    def __init__(self, settings: Settings):
        self.s = settings
        self.handle: Optional[CaptureHandle] = None
        self.ready = asyncio.Event()

    @property
    def is_ready(self) -> bool:
        return self.ready.is_set() and self.handle is not None and self.handle.live

    def _open_device(self, constraints: dict) -> CaptureHandle:
        cam_idx = self.s.CAMERA_INDEX
        logger.debug(f"[capture] opening camera index={cam_idx} constraints={constraints}")
        device = cv2.VideoCapture(cam_idx)
        if not device.isOpened():
            device.release()
            raise PermissionError(
                f"Unable to access webcam (camera index {cam_idx}). "
                "Please check permissions and try again."
            )
        width = _ideal(constraints, "width", DEFAULT_WIDTH)
        height = _ideal(constraints, "height", DEFAULT_HEIGHT)
        device.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        device.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        w = int(device.get(cv2.CAP_PROP_FRAME_WIDTH) or 0) or width
        h = int(device.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0) or height
        return CaptureHandle(device, w, h)

    async def open(self, constraints: Optional[dict] = None) -> CaptureHandle:
        """
        Acquire the camera and signal readiness.

        Raises:
            PermissionError: the device could not be opened.
        """
        if self.handle is not None:
            self.close()
        constraints = constraints or self.s.capture_constraints()
        self.ready.clear()

        handle = await asyncio.to_thread(self._open_device, constraints)
        self.handle = handle
        try:
            # first frame fixes the surface dimensions
            ok, frame = await asyncio.to_thread(handle.device.read)
        except BaseException:
            self.close(handle)
            raise
        if ok and frame is not None:
            handle.height, handle.width = frame.shape[:2]
            handle.last_frame = frame
        handle.state = CaptureState.ACTIVE
        self.ready.set()
        logger.debug(f"[capture] stream ready {handle.width}x{handle.height}")
        return handle

    async def read_frame(self) -> Optional[np.ndarray]:
        handle = self.handle
        if handle is None or not handle.live:
            return None
        ok, frame = await asyncio.to_thread(handle.device.read)
        if not ok or frame is None:
            handle.failed_reads += 1
            if handle.failed_reads >= MAX_FAILED_READS:
                logger.warning("[capture] stream stopped delivering frames; marking ended")
                handle.ended = True
            return None
        handle.failed_reads = 0
        handle.last_frame = frame
        return frame

    def close(self, handle: Optional[CaptureHandle] = None) -> None:
        """Release the device. Safe to call repeatedly."""
        handle = handle or self.handle
        if handle is None:
            return
        if handle.state != CaptureState.RELEASED:
            handle.state = CaptureState.RELEASED
            try:
                handle.device.release()
            except Exception:
                logger.exception("[capture] device release failed")
            logger.debug("[capture] device released")
        if handle is self.handle:
            self.ready.clear()

    async def __aenter__(self) -> "CaptureSession":
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()
