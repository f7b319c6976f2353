"""
Facial landmark geometry.

Turns a face-mesh landmark set (MediaPipe topology, pixel coordinates) into the
FeatureVector consumed by the emotion scorer. Landmark sets shorter than the
full mesh are tolerated: every named point has a low-index fallback.
"""
from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from mood.models import FeatureVector


# -----------------------------------------------------------------------------
# Calibration constants (pixel units / degrees)
# -----------------------------------------------------------------------------
MIN_LANDMARKS = 20              # Below this the geometry is unreliable
MOUTH_OPEN_RATIO = 0.3          # Open if height > 0.3 * width
EYEBROW_RAISED_HEIGHT = 25.0    # Brow-to-eye distance above which brows are raised
EYEBROW_LOWERED_HEIGHT = 15.0   # ... below which brows are lowered
EYEBROW_INWARD_ANGLE = 15.0     # |angle| beyond which a brow slants inward
EYES_WIDE_OPENNESS = 15.0       # Lid distance above which eyes are wide open
# -----------------------------------------------------------------------------

# name -> (preferred mesh index, fallback index)
POINTS = {
    "mouth_left": (61, 0),
    "mouth_right": (291, 1),
    "upper_lip": (13, 2),
    "lower_lip": (14, 3),
    "mouth_center": (0, 4),
    "left_eye": (159, 5),
    "right_eye": (386, 6),
    "left_eye_top": (159, 7),
    "left_eye_bottom": (145, 8),
    "right_eye_top": (386, 9),
    "right_eye_bottom": (374, 10),
    "left_eyebrow_outer": (65, 11),
    "left_eyebrow_inner": (105, 12),
    "right_eyebrow_outer": (295, 13),
    "right_eyebrow_inner": (334, 14),
}


class LandmarkSet:
    """Read-only view over an (N, 2) or (N, 3) landmark array."""

    def __init__(self, points: Sequence[Sequence[float]] | np.ndarray):
        arr = np.asarray(points, dtype=np.float64)
        if arr.size == 0:
            arr = np.zeros((0, 2), dtype=np.float64)
        elif arr.ndim != 2 or arr.shape[1] < 2:
            raise ValueError(f"landmarks need at least 2 coordinates, got shape {arr.shape}")
        arr.setflags(write=False)
        self._pts = arr

    def __len__(self) -> int:
        return int(self._pts.shape[0])

    def point(self, index: int, fallback: int) -> Tuple[float, float]:
        """(x, y) at ``index``, or at ``fallback`` when the set is too short."""
        idx = index if index < len(self) else fallback
        row = self._pts[idx]
        return float(row[0]), float(row[1])

    def named(self, name: str) -> Tuple[float, float]:
        index, fallback = POINTS[name]
        return self.point(index, fallback)

    def to_list(self) -> list[list[float]]:
        return self._pts[:, :2].tolist()


def _distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def _angle_deg(dy: float, dx: float) -> float:
    return math.degrees(math.atan2(dy, dx))


def extract_features(landmarks) -> Optional[FeatureVector]:
    """
    Compute mouth, eyebrow and eye measurements from one face.

    Args:
        landmarks: LandmarkSet, array-like of points, or None.

    Returns:
        FeatureVector, or None when fewer than MIN_LANDMARKS points are given.
    """
    if landmarks is None:
        return None
    lm = landmarks if isinstance(landmarks, LandmarkSet) else LandmarkSet(landmarks)
    if len(lm) < MIN_LANDMARKS:
        return None

    mouth_left = lm.named("mouth_left")
    mouth_right = lm.named("mouth_right")
    upper_lip = lm.named("upper_lip")
    lower_lip = lm.named("lower_lip")
    mouth_center = lm.named("mouth_center")

    mouth_width = _distance(mouth_left, mouth_right)
    mouth_height = _distance(upper_lip, lower_lip)
    mouth_ratio = mouth_width / max(mouth_height, 1.0)
    mouth_corner_diff = abs(mouth_left[1] - mouth_right[1])
    # image y grows downward
    turned_down = mouth_left[1] > mouth_center[1] and mouth_right[1] > mouth_center[1]
    mouth_open = mouth_height > mouth_width * MOUTH_OPEN_RATIO

    l_outer, l_inner = lm.named("left_eyebrow_outer"), lm.named("left_eyebrow_inner")
    r_outer, r_inner = lm.named("right_eyebrow_outer"), lm.named("right_eyebrow_inner")
    left_brow_h = abs(l_outer[1] - lm.named("left_eye")[1])
    right_brow_h = abs(r_outer[1] - lm.named("right_eye")[1])

    # right side is measured outer -> inner so both angles share a sign convention
    left_angle = _angle_deg(l_outer[1] - l_inner[1], l_outer[0] - l_inner[0])
    right_angle = _angle_deg(r_inner[1] - r_outer[1], r_inner[0] - r_outer[0])

    left_open = abs(lm.named("left_eye_top")[1] - lm.named("left_eye_bottom")[1])
    right_open = abs(lm.named("right_eye_top")[1] - lm.named("right_eye_bottom")[1])

    return FeatureVector(
        mouth_width=mouth_width,
        mouth_height=mouth_height,
        mouth_ratio=mouth_ratio,
        mouth_corner_diff=mouth_corner_diff,
        is_mouth_turned_down=turned_down,
        is_mouth_open=mouth_open,
        left_eyebrow_height=left_brow_h,
        right_eyebrow_height=right_brow_h,
        eyebrow_raised=left_brow_h > EYEBROW_RAISED_HEIGHT or right_brow_h > EYEBROW_RAISED_HEIGHT,
        eyebrow_lowered=left_brow_h < EYEBROW_LOWERED_HEIGHT or right_brow_h < EYEBROW_LOWERED_HEIGHT,
        left_eyebrow_angle=left_angle,
        right_eyebrow_angle=right_angle,
        eyebrows_angled_inward=left_angle < -EYEBROW_INWARD_ANGLE and right_angle > EYEBROW_INWARD_ANGLE,
        left_eye_openness=left_open,
        right_eye_openness=right_open,
        eyes_wide_open=left_open > EYES_WIDE_OPENNESS or right_open > EYES_WIDE_OPENNESS,
    )
