"""
Typed models for the multi-head vision runtime.

Tensors, detections, frames, stats and configuration shared by the
decoders, the pipeline and the session layer.
"""

from .errors import (
    VisionRuntimeError,
    HeadError,
    ShapeMismatch,
    ProviderFailure,
    ResourceBusy,
    SessionStartError,
)
from .tensor import TensorView
from .frame import FrameData
from .detection import (
    Head,
    DetectionKind,
    BoundingBox,
    Keypoint,
    Mask2D,
    ObjectDetection,
    PoseDetection,
    SegmentDetection,
    Detection,
)
from .stats import FrameStats, FrameResult, SchedulerSnapshot, LatencyWindow
from .config import (
    Config,
    CameraConfig,
    InferenceConfig,
    PoseConfig,
    SegmentConfig,
    SchedulerConfig,
)

__all__ = [
    # Errors
    "VisionRuntimeError",
    "HeadError",
    "ShapeMismatch",
    "ProviderFailure",
    "ResourceBusy",
    "SessionStartError",
    # Tensor / frame
    "TensorView",
    "FrameData",
    # Detection
    "Head",
    "DetectionKind",
    "BoundingBox",
    "Keypoint",
    "Mask2D",
    "ObjectDetection",
    "PoseDetection",
    "SegmentDetection",
    "Detection",
    # Stats
    "FrameStats",
    "FrameResult",
    "SchedulerSnapshot",
    "LatencyWindow",
    # Config
    "Config",
    "CameraConfig",
    "InferenceConfig",
    "PoseConfig",
    "SegmentConfig",
    "SchedulerConfig",
]
