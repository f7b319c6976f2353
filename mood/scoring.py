"""
Heuristic emotion scoring from facial features.

Each emotion gets an independent score from the FeatureVector; the five scores
are floored/capped, jittered slightly and normalized into a distribution.
"""
from __future__ import annotations

from typing import Dict, Optional

import numpy as np

from mood.models import EMOTION_LABELS, EmotionDistribution, FeatureVector
from mood.landmarks import EYEBROW_INWARD_ANGLE


# -----------------------------------------------------------------------------
# Score caps, floors and tiers
# -----------------------------------------------------------------------------
DEFAULT_DISTRIBUTION: EmotionDistribution = {
    "neutral": 0.17,
    "happy": 0.50,
    "sad": 0.10,
    "angry": 0.08,
    "surprised": 0.15,
}

SADNESS_CAP = 0.7
ANGER_CAP = 0.6
SURPRISE_CAP = 0.9
HAPPINESS_CAP = 0.95
HAPPY_FINAL_CAP = 0.7       # applied after the neutral term is derived
NEUTRAL_BASE = 0.4
NEUTRAL_FLOOR = 0.05
NEGATIVE_FLOOR = 0.1        # sad / angry / surprised
JITTER = 0.025

CORNER_DIFF_HIGH = 4.0
CORNER_DIFF_LOW = 2.5
LOW_MOUTH_RATIO = 1.5
# (mouth ratio threshold, happiness score), checked top-down
HAPPY_TIERS = ((3.0, 0.8), (2.5, 0.6), (2.0, 0.4), (1.5, 0.2))
TURNED_DOWN_PENALTY = 0.2
# -----------------------------------------------------------------------------


def sadness_score(is_mouth_turned_down: bool, mouth_corner_diff: float, mouth_ratio: float) -> float:
    score = 0.0
    if is_mouth_turned_down:
        score += 0.4
    if mouth_corner_diff > CORNER_DIFF_HIGH:
        score += 0.2
    elif mouth_corner_diff > CORNER_DIFF_LOW:
        score += 0.1
    if mouth_ratio < LOW_MOUTH_RATIO:
        score += 0.15
    return min(SADNESS_CAP, score)


def anger_score(eyebrow_lowered: bool, eyebrows_angled_inward: bool,
                left_angle: float, right_angle: float) -> float:
    score = 0.0
    if eyebrow_lowered:
        score += 0.3
    if eyebrows_angled_inward:
        score += 0.25
    elif left_angle < -EYEBROW_INWARD_ANGLE or right_angle > EYEBROW_INWARD_ANGLE:
        # only one brow slants
        score += 0.15
    return min(ANGER_CAP, score)


def surprise_score(eyebrow_raised: bool, eyes_wide_open: bool, is_mouth_open: bool) -> float:
    score = 0.0
    if eyebrow_raised:
        score += 0.4
    if eyes_wide_open:
        score += 0.3
    if is_mouth_open:
        score += 0.3
    return min(SURPRISE_CAP, score)


def happiness_score(mouth_ratio: float, is_mouth_turned_down: bool) -> float:
    score = 0.0
    for threshold, value in HAPPY_TIERS:
        if mouth_ratio > threshold:
            score = value
            break
    if is_mouth_turned_down:
        score = max(0.0, score - TURNED_DOWN_PENALTY)
    return min(HAPPINESS_CAP, score)


def raw_scores(features: FeatureVector) -> Dict[str, float]:
    """Floored/capped per-emotion scores before jitter and normalization."""
    sad = sadness_score(features.is_mouth_turned_down, features.mouth_corner_diff, features.mouth_ratio)
    angry = anger_score(features.eyebrow_lowered, features.eyebrows_angled_inward,
                        features.left_eyebrow_angle, features.right_eyebrow_angle)
    surprised = surprise_score(features.eyebrow_raised, features.eyes_wide_open, features.is_mouth_open)
    happy = happiness_score(features.mouth_ratio, features.is_mouth_turned_down)
    neutral = NEUTRAL_BASE - (sad + angry + surprised + happy) / 2

    return {
        "neutral": max(NEUTRAL_FLOOR, neutral),
        "happy": min(HAPPY_FINAL_CAP, happy),
        "sad": max(NEGATIVE_FLOOR, sad),
        "angry": max(NEGATIVE_FLOOR, angry),
        "surprised": max(NEGATIVE_FLOOR, surprised),
    }


def normalize(values: Dict[str, float]) -> EmotionDistribution:
    """Scale to sum 1 over EMOTION_LABELS; uniform if everything is zero."""
    clipped = {k: max(0.0, float(values.get(k, 0.0))) for k in EMOTION_LABELS}
    total = sum(clipped.values())
    if total <= 0.0:
        return {k: 1.0 / len(EMOTION_LABELS) for k in EMOTION_LABELS}
    return {k: v / total for k, v in clipped.items()}


def score_emotions(features: Optional[FeatureVector],
                   rng: Optional[np.random.Generator] = None) -> EmotionDistribution:
    """
    Map a feature set to a normalized emotion distribution.

    ``None`` (too few landmarks) yields DEFAULT_DISTRIBUTION unchanged.
    """
    if features is None:
        return dict(DEFAULT_DISTRIBUTION)
    rng = rng or np.random.default_rng()
    scores = raw_scores(features)
    jittered = {k: max(0.0, v + rng.uniform(-JITTER, JITTER)) for k, v in scores.items()}
    return normalize(jittered)


def dominant_mood(distribution: EmotionDistribution) -> str:
    """Argmax in EMOTION_LABELS order; ties go to the earlier label."""
    best = EMOTION_LABELS[0]
    for label in EMOTION_LABELS[1:]:
        if distribution.get(label, 0.0) > distribution.get(best, 0.0):
            best = label
    return best
