"""Landmark overlay drawing for preview windows.

- draw_landmarks: face-mesh dots, hand dots with finger links, and the current
  mood label on a copy of the frame
"""
from __future__ import annotations
import cv2
import numpy as np
from typing import List, Optional, Sequence, Tuple

FACE_COLOR = (219, 238, 50)   # BGR
HAND_COLOR = (0, 0, 255)
LABEL_COLOR = (255, 255, 255)


def _pt(p: Sequence[float]) -> Tuple[int, int]:
    return int(round(p[0])), int(round(p[1]))


def draw_landmarks(frame: np.ndarray,
                   face_landmarks: Optional[List[Sequence[float]]] = None,
                   hand_landmarks: Optional[List[List[Sequence[float]]]] = None,
                   label: Optional[str] = None) -> np.ndarray:
    """Draw landmarks and an optional label.

    Args:
        frame: BGR image
        face_landmarks: face mesh points (x, y[, z]) in pixels
        hand_landmarks: one point list per hand; 21 points, 4 per finger after the wrist
        label: text drawn in the top-left corner (e.g. "happy 72%")

    Returns:
        Annotated copy of the frame
    """
    out = frame.copy()

    for p in face_landmarks or []:
        cv2.circle(out, _pt(p), 1, FACE_COLOR, -1, cv2.LINE_AA)

    for hand in hand_landmarks or []:
        for p in hand:
            cv2.circle(out, _pt(p), 3, HAND_COLOR, -1, cv2.LINE_AA)
        for i in range(len(hand) - 1):
            # 0 is the wrist, 4k a fingertip: neither links to the next point
            if i % 4 != 0:
                cv2.line(out, _pt(hand[i]), _pt(hand[i + 1]), HAND_COLOR, 2, cv2.LINE_AA)

    if label:
        cv2.putText(out, label, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, LABEL_COLOR, 2, cv2.LINE_AA)
    return out
