"""
Configuration for the live mood tracker.
"""
from pydantic import BaseModel
import os

class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    CAPTURE_WIDTH: int = int(os.getenv("CAPTURE_WIDTH", "640"))
    CAPTURE_HEIGHT: int = int(os.getenv("CAPTURE_HEIGHT", "480"))
    FACING_MODE: str = (os.getenv("FACING_MODE", "user") or "user")

    DETECTION_INTERVAL_MS: int = int(os.getenv("DETECTION_INTERVAL_MS", "50"))
    MODEL_LOAD_TIMEOUT: float = float(os.getenv("MODEL_LOAD_TIMEOUT", "10"))
    MAX_FACES: int = int(os.getenv("MAX_FACES", "1"))
    MAX_HANDS: int = int(os.getenv("MAX_HANDS", "2"))
    HAND_LOAD_CONFIDENCE: float = float(os.getenv("HAND_LOAD_CONFIDENCE", "0.6"))
    HAND_DETECTION_CONFIDENCE: float = float(os.getenv("HAND_DETECTION_CONFIDENCE", "0.5"))

    MOOD_API_URL: str = os.getenv("MOOD_API_URL", "http://localhost:5000")
    HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "20"))
    SHOW_LANDMARKS: bool = os.getenv("SHOW_LANDMARKS", "false").lower() in ("1", "true", "yes")
    PORT: int = int(os.getenv("PORT", "5000"))

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize FACING_MODE: only the two camera facings are meaningful
        parts = (self.FACING_MODE or "").split()
        facing = parts[0].lower() if parts else "user"
        if facing not in ("user", "environment"):
            facing = "user"
        object.__setattr__(self, "FACING_MODE", facing)
        object.__setattr__(self, "MOOD_API_URL", self.MOOD_API_URL.rstrip("/"))

    @property
    def detection_interval(self) -> float:
        """Tick period in seconds."""
        return max(1, self.DETECTION_INTERVAL_MS) / 1000.0

    def capture_constraints(self) -> dict:
        return {
            "width": {"ideal": self.CAPTURE_WIDTH},
            "height": {"ideal": self.CAPTURE_HEIGHT},
            "facingMode": self.FACING_MODE,
        }
