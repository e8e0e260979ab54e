"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.tensor import TensorView  # noqa: E402


def object_tensors(rows):
    """
    Build (scores, boxes) TensorViews from [(class_scores, (cx, cy, w, h)), ...].
    """
    scores = np.array([r[0] for r in rows], dtype=np.float32).reshape(len(rows), -1)
    boxes = np.array([r[1] for r in rows], dtype=np.float32).reshape(len(rows), 4)
    return TensorView.from_array(scores), TensorView.from_array(boxes)


def pose_row(box=(0.1, 0.2, 0.5, 0.9), score=0.9, keypoint_conf=0.8):
    """One 57-wide pose row; keypoint k sits at (k/20, k/20)."""
    row = np.zeros(57, dtype=np.float32)
    row[0:4] = box
    row[4] = score
    for k in range(17):
        row[6 + 3 * k: 9 + 3 * k] = (k / 20.0, k / 20.0, keypoint_conf)
    return row


def segment_row(box=(0.25, 0.25, 0.75, 0.75), score=0.9, class_value=0.0, coeffs=None):
    """One 38-wide segmentation row."""
    row = np.zeros(38, dtype=np.float32)
    row[0:4] = box
    row[4] = score
    row[5] = class_value
    if coeffs is not None:
        row[6:] = coeffs
    return row


@pytest.fixture
def frame():
    """A 640x480 BGR test frame."""
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def object_outputs():
    """Object head outputs with one slot above 0.5 (class 2) and one below."""
    scores, boxes = object_tensors([
        ([0.1, 0.2, 0.7], (0.5, 0.5, 0.2, 0.4)),
        ([0.3, 0.1, 0.2], (0.1, 0.1, 0.1, 0.1)),
    ])
    return {"scores": scores, "boxes": boxes}


@pytest.fixture
def pose_outputs():
    return {"poses": TensorView.from_array(np.stack([pose_row()]))}


@pytest.fixture
def segment_outputs():
    return {
        "detections": TensorView.from_array(np.stack([segment_row()])),
        "protos": TensorView.from_array(np.zeros((32, 16, 16), dtype=np.float32)),
    }


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 30

inference:
  heads: [object]
  threshold: 0.5
  input_size: 640
  models:
    object: "models/object.onnx"

pose:
  visibility_threshold: 0.3

segment:
  mask_threshold: null

scheduler:
  tick_interval_ms: 16.7
  latency_window: 10

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
        },
        "inference": {
            "heads": ["object", "pose"],
            "threshold": 0.5,
            "input_size": 640,
            "models": {"object": "models/object.onnx", "pose": "models/pose.onnx"},
        },
        "pose": {"visibility_threshold": 0.3},
        "segment": {"mask_threshold": None},
        "scheduler": {
            "tick_interval_ms": 16.7,
            "fps_interval_ms": 1000,
            "latency_window": 10,
            "drain_timeout_s": 5.0,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def make_object_tensors():
    return object_tensors


@pytest.fixture
def make_pose_row():
    return pose_row


@pytest.fixture
def make_segment_row():
    return segment_row
