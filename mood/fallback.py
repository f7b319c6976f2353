"""
Simulated emotion signal used when detection models are unavailable.

The profile rotates on a 30 second cycle: happy-biased, then neutral-biased,
then mixed.
"""
from __future__ import annotations

import time
from typing import Dict, Optional, Tuple

import numpy as np

from mood.models import EmotionDistribution, FaceDetails, HandDetails
from mood.scoring import normalize

CYCLE_MS = 30_000

# (upper bound of cycle position, {label: (low, high)})
PROFILES: Tuple[Tuple[float, Dict[str, Tuple[float, float]]], ...] = (
    (0.3, {  # happy-biased
        "neutral": (0.3, 0.5),
        "happy": (0.4, 0.7),
        "sad": (0.0, 0.2),
        "angry": (0.0, 0.1),
        "surprised": (0.0, 0.1),
    }),
    (0.6, {  # neutral-biased
        "neutral": (0.6, 0.8),
        "happy": (0.1, 0.3),
        "sad": (0.1, 0.2),
        "angry": (0.0, 0.1),
        "surprised": (0.0, 0.1),
    }),
    (1.0, {  # mixed
        "neutral": (0.3, 0.6),
        "happy": (0.1, 0.4),
        "sad": (0.1, 0.4),
        "angry": (0.05, 0.2),
        "surprised": (0.05, 0.2),
    }),
)


def cycle_position(now_ms: int) -> float:
    return (int(now_ms) % CYCLE_MS) / CYCLE_MS


def simulate(now_ms: Optional[int] = None,
             rng: Optional[np.random.Generator] = None) -> EmotionDistribution:
    """Biased random distribution for the cycle position of ``now_ms``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    rng = rng or np.random.default_rng()
    pos = cycle_position(now_ms)
    ranges = next(r for upper, r in PROFILES if pos < upper)
    return normalize({label: rng.uniform(lo, hi) for label, (lo, hi) in ranges.items()})


def fallback_details(rng: Optional[np.random.Generator] = None) -> Tuple[FaceDetails, HandDetails]:
    """Placeholder face/hand metadata shown while simulating."""
    rng = rng or np.random.default_rng()
    face = FaceDetails(
        faces_detected=1,
        keypoints=0,
        bounding_box=None,
        confidence=float(0.7 + rng.uniform(0.0, 0.2)),
        fallback_mode=True,
    )
    return face, HandDetails(fallback_mode=True)
