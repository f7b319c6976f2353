"""
Pydantic data models shared by the detection engine and the API.
"""
from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional, Tuple
import time

EMOTION_LABELS: Tuple[str, ...] = ("neutral", "happy", "sad", "angry", "surprised")

# label -> probability, keys in EMOTION_LABELS order
EmotionDistribution = Dict[str, float]


class DetectionMode(str, Enum):
    AI = "ai"
    FALLBACK = "fallback"


class ModelState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class FeatureVector(BaseModel):
    """Geometric measurements derived from one face landmark set."""
    model_config = ConfigDict(frozen=True)

    mouth_width: float
    mouth_height: float
    mouth_ratio: float
    mouth_corner_diff: float
    is_mouth_turned_down: bool
    is_mouth_open: bool
    left_eyebrow_height: float
    right_eyebrow_height: float
    eyebrow_raised: bool
    eyebrow_lowered: bool
    left_eyebrow_angle: float
    right_eyebrow_angle: float
    eyebrows_angled_inward: bool
    left_eye_openness: float
    right_eye_openness: float
    eyes_wide_open: bool


class FaceDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    faces_detected: int = Field(0, alias="facesDetected")
    keypoints: int = 0
    bounding_box: Optional[Dict[str, float]] = Field(None, alias="boundingBox")
    confidence: float = 0.0
    fallback_mode: bool = Field(False, alias="fallbackMode")


class HandDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hands_detected: int = Field(0, alias="handsDetected")
    handedness: List[str] = Field(default_factory=list)
    keypoints: List[int] = Field(default_factory=list)
    confidence: List[float] = Field(default_factory=list)
    fallback_mode: bool = Field(False, alias="fallbackMode")


class CycleDiagnostics(BaseModel):
    """Per-cycle measurements, returned with the result they describe."""
    features: Optional[FeatureVector] = None
    raw_scores: Optional[Dict[str, float]] = None
    error: Optional[str] = None
    duration_ms: float = 0.0
    face_landmarks: Optional[List[List[float]]] = None
    hand_landmarks: Optional[List[List[List[float]]]] = None


class DetectionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    dominant_mood: str
    distribution: EmotionDistribution
    face_details: FaceDetails
    hand_details: HandDetails
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    mode: DetectionMode
    diagnostics: CycleDiagnostics = Field(default_factory=CycleDiagnostics)


# persistence payloads


class MoodLogCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mood: str = Field(..., min_length=1)
    notes: str = ""
    emotion_scores: Dict[str, float] = Field(default_factory=dict, alias="emotionScores")
    face_details: Optional[Dict[str, Any]] = Field(None, alias="faceDetails")
    hand_details: Optional[Dict[str, Any]] = Field(None, alias="handDetails")
    timestamp: Optional[datetime] = None


class MoodRecord(MoodLogCreate):
    id: str
    date: datetime
    timestamp: datetime


class Notification(BaseModel):
    level: Literal["info", "warning", "error", "fatal"]
    message: str
    ts: float = Field(default_factory=time.time)


class LiveStatus(BaseModel):
    running: bool
    video_ready: bool = False
    models_state: ModelState = ModelState.UNLOADED
    degraded: bool = False
    mode: Optional[DetectionMode] = None
    detecting: bool = False
    ticks: int = 0
    ticks_skipped: int = 0
    last_result: Optional[DetectionResult] = None
