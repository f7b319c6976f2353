import numpy as np
import pytest

import mood.capture as capture_mod
from mood.landmarks import POINTS

# Neutral-ish smiling face in 640x480 pixel space, keyed by landmark name
SMILE_FACE = {
    "mouth_left": (260.0, 330.0),
    "mouth_right": (380.0, 330.0),
    "upper_lip": (320.0, 325.0),
    "lower_lip": (320.0, 345.0),
    "mouth_center": (320.0, 340.0),
    "left_eye": (250.0, 200.0),
    "right_eye": (390.0, 200.0),
    "left_eye_top": (250.0, 200.0),
    "left_eye_bottom": (250.0, 210.0),
    "right_eye_top": (390.0, 200.0),
    "right_eye_bottom": (390.0, 210.0),
    "left_eyebrow_outer": (230.0, 180.0),
    "left_eyebrow_inner": (270.0, 180.0),
    "right_eyebrow_outer": (410.0, 180.0),
    "right_eyebrow_inner": (370.0, 180.0),
}


@pytest.fixture
def face_mesh():
    """Build a 468x3 mesh from SMILE_FACE with per-name overrides."""
    def build(**overrides):
        lm = np.zeros((468, 3), dtype=np.float64)
        lm[:, 0], lm[:, 1] = 320.0, 240.0
        geometry = {**SMILE_FACE, **overrides}
        # left_eye/left_eye_top share index 159, so write "top" last
        for name in sorted(geometry, key=lambda n: n.endswith("_top")):
            idx, _ = POINTS[name]
            lm[idx, 0], lm[idx, 1] = geometry[name]
        return lm
    return build


class DummyCap:
    def __init__(self, idx=0, opened=True, frame_shape=(48, 64, 3), fail_reads=False):
        self.idx = idx
        self.opened = opened
        self.frame_shape = frame_shape
        self.fail_reads = fail_reads
        self.props = {}
        self.reads = 0
        self.releases = 0

    def isOpened(self):
        return self.opened and self.releases == 0

    def read(self):
        self.reads += 1
        if self.fail_reads or not self.isOpened():
            return False, None
        return True, np.zeros(self.frame_shape, dtype=np.uint8)

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def get(self, prop):
        return 0.0

    def release(self):
        self.releases += 1


class CameraRig:
    """Records every DummyCap handed out; ``options`` apply to the next ones."""
    def __init__(self):
        self.created = []
        self.options = {}

    def __call__(self, idx):
        cap = DummyCap(idx, **self.options)
        self.created.append(cap)
        return cap


@pytest.fixture
def dummy_camera(monkeypatch):
    rig = CameraRig()
    monkeypatch.setattr(capture_mod.cv2, "VideoCapture", rig)
    return rig
