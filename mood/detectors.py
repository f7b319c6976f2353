"""
Face and hand detection capabilities.

The scheduler only sees the FaceDetector / HandDetector interfaces. Each has a
MediaPipe-backed implementation and a null implementation; which one a session
gets is decided once, by the ModelLoader.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

import cv2
import numpy as np

# FaceMesh does not report a per-face score
DEFAULT_FACE_CONFIDENCE = 0.98


@dataclass(frozen=True)
class FaceObservation:
    landmarks: np.ndarray  # (468, 3) pixel coordinates
    bounding_box: Optional[Dict[str, float]] = None  # topLeft/bottomRight corners
    confidence: float = DEFAULT_FACE_CONFIDENCE


@dataclass(frozen=True)
class HandObservation:
    landmarks: np.ndarray  # (21, 3) pixel coordinates
    handedness: str = "Right"
    confidence: float = 0.0


class FaceDetector(ABC):
    """Estimates face landmark meshes in a BGR frame."""

    @abstractmethod
    async def estimate(self, frame: np.ndarray) -> List[FaceObservation]:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    def close(self) -> None:
        pass


class HandDetector(ABC):
    """Estimates hand landmarks in a BGR frame."""

    @abstractmethod
    async def estimate(self, frame: np.ndarray) -> List[HandObservation]:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    def close(self) -> None:
        pass


class NullFaceDetector(FaceDetector):
    async def estimate(self, frame: np.ndarray) -> List[FaceObservation]:
        return []

    def is_available(self) -> bool:
        return False

    def get_name(self) -> str:
        return "null"


class NullHandDetector(HandDetector):
    async def estimate(self, frame: np.ndarray) -> List[HandObservation]:
        return []

    def is_available(self) -> bool:
        return False

    def get_name(self) -> str:
        return "null"


def _bounding_box(points: np.ndarray) -> Dict[str, float]:
    xs, ys = points[:, 0], points[:, 1]
    return {
        "topLeft_x": float(np.min(xs)),
        "topLeft_y": float(np.min(ys)),
        "bottomRight_x": float(np.max(xs)),
        "bottomRight_y": float(np.max(ys)),
    }


def _to_pixels(landmark_list, width: int, height: int) -> np.ndarray:
    return np.array(
        [[lm.x * width, lm.y * height, lm.z * width] for lm in landmark_list.landmark],
        dtype=np.float32,
    )


class MediaPipeFaceDetector(FaceDetector):
    """MediaPipe Face Mesh in tracking mode (468 landmarks)."""

    def __init__(self, max_faces: int = 1, min_detection_confidence: float = 0.5):
        # Lazy import: a missing mediapipe install is a model load failure
        import mediapipe as mp

        self.face_mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=max_faces,
            refine_landmarks=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_detection_confidence,
        )

    def _process(self, frame: np.ndarray) -> List[FaceObservation]:
        if frame is None or frame.size == 0:
            return []
        height, width = frame.shape[:2]
        results = self.face_mesh.process(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        out: List[FaceObservation] = []
        for face_landmarks in results.multi_face_landmarks or []:
            pts = _to_pixels(face_landmarks, width, height)
            out.append(FaceObservation(landmarks=pts, bounding_box=_bounding_box(pts)))
        return out

    async def estimate(self, frame: np.ndarray) -> List[FaceObservation]:
        return await asyncio.to_thread(self._process, frame)

    def is_available(self) -> bool:
        return True

    def get_name(self) -> str:
        return "mediapipe_face_mesh"

    def close(self) -> None:
        self.face_mesh.close()


class MediaPipeHandDetector(HandDetector):
    """MediaPipe Hands (21 landmarks per hand)."""

    def __init__(self, max_hands: int = 2, load_confidence: float = 0.6,
                 min_confidence: float = 0.5):
        import mediapipe as mp

        self.min_confidence = float(min_confidence)
        self.hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=max_hands,
            min_detection_confidence=load_confidence,
            min_tracking_confidence=load_confidence,
        )

    def _process(self, frame: np.ndarray) -> List[HandObservation]:
        if frame is None or frame.size == 0:
            return []
        height, width = frame.shape[:2]
        results = self.hands.process(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        if not results.multi_hand_landmarks or not results.multi_handedness:
            return []
        out: List[HandObservation] = []
        for hand_lm, handedness in zip(results.multi_hand_landmarks, results.multi_handedness):
            cls = handedness.classification[0]
            if cls.score < self.min_confidence:
                continue
            out.append(HandObservation(
                landmarks=_to_pixels(hand_lm, width, height),
                handedness=cls.label,
                confidence=float(cls.score),
            ))
        return out

    async def estimate(self, frame: np.ndarray) -> List[HandObservation]:
        return await asyncio.to_thread(self._process, frame)

    def is_available(self) -> bool:
        return True

    def get_name(self) -> str:
        return "mediapipe_hands"

    def close(self) -> None:
        self.hands.close()
