"""
Detection models produced by the decoders.

A detection is one of three variants sharing a pixel-space bounding box and
a score. Detections have no identity across frames.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np


class Head(str, Enum):
    """An independent model output with its own tensor layout."""
    OBJECT = "object"
    POSE = "pose"
    SEGMENT = "segment"

    @classmethod
    def parse(cls, value: Union[str, "Head"]) -> "Head":
        if isinstance(value, Head):
            return value
        key = str(value).strip().lower()
        aliases = {"detect": "object", "detection": "object", "seg": "segment", "segmentation": "segment"}
        key = aliases.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown head: {value!r}") from None


class DetectionKind(str, Enum):
    OBJECT = "object"
    POSE = "pose"
    SEGMENT = "segment"


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned rect in destination pixel coordinates.

    Attributes:
        x: Left edge.
        y: Top edge.
        w: Width, never negative.
        h: Height, never negative.
    """
    x: float
    y: float
    w: float
    h: float

    def __post_init__(self):
        if self.w < 0:
            object.__setattr__(self, "w", 0.0)
        if self.h < 0:
            object.__setattr__(self, "h", 0.0)

    @property
    def x2(self) -> float:
        return self.x + self.w

    @property
    def y2(self) -> float:
        return self.y + self.h

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.w / 2, self.y + self.h / 2)

    @property
    def area(self) -> float:
        return self.w * self.h

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, w, h) tuple."""
        return (self.x, self.y, self.w, self.h)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (x1, y1, x2, y2) tuple."""
        return (int(self.x), int(self.y), int(self.x2), int(self.y2))

    @classmethod
    def from_center(
        cls, cx: float, cy: float, w: float, h: float, frame_w: float, frame_h: float
    ) -> "BoundingBox":
        """Create from normalized center/size, scaled to the destination frame."""
        return cls(
            x=float((cx - w / 2) * frame_w),
            y=float((cy - h / 2) * frame_h),
            w=float(w * frame_w),
            h=float(h * frame_h),
        )

    @classmethod
    def from_corners(
        cls, x1: float, y1: float, x2: float, y2: float, frame_w: float, frame_h: float
    ) -> "BoundingBox":
        """Create from normalized top-left and bottom-right corners."""
        return cls(
            x=float(x1 * frame_w),
            y=float(y1 * frame_h),
            w=float((x2 - x1) * frame_w),
            h=float((y2 - y1) * frame_h),
        )


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    confidence: float

    def is_visible(self, threshold: float) -> bool:
        return self.confidence >= threshold


@dataclass(frozen=True, eq=False)
class Mask2D:
    """
    Dense per-pixel opacity grid.

    Attributes:
        width: Grid width in cells.
        height: Grid height in cells.
        alpha: uint8 array of shape (height, width), 0 = transparent.
    """
    width: int
    height: int
    alpha: np.ndarray

    @classmethod
    def from_probabilities(cls, prob: np.ndarray, threshold: Optional[float] = None) -> "Mask2D":
        """Quantize probabilities in [0, 1] to alpha, optionally binarized at threshold."""
        prob = np.asarray(prob, dtype=np.float32)
        if prob.ndim != 2:
            raise ValueError(f"Mask probabilities must be 2-D, got shape {prob.shape}")
        if threshold is None:
            alpha = np.clip(np.rint(prob * 255.0), 0, 255).astype(np.uint8)
        else:
            alpha = np.where(prob >= threshold, 255, 0).astype(np.uint8)
        return cls(width=int(prob.shape[1]), height=int(prob.shape[0]), alpha=alpha)

    @classmethod
    def empty(cls) -> "Mask2D":
        return cls(width=0, height=0, alpha=np.zeros((0, 0), dtype=np.uint8))

    def coverage(self) -> float:
        """Fraction of cells with non-zero opacity."""
        if self.alpha.size == 0:
            return 0.0
        return float(np.count_nonzero(self.alpha)) / float(self.alpha.size)


@dataclass(frozen=True)
class ObjectDetection:
    box: BoundingBox
    score: float
    class_id: int
    label: str
    kind: DetectionKind = field(default=DetectionKind.OBJECT, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "box": list(self.box.as_tuple()),
            "score": self.score,
            "class_id": self.class_id,
            "label": self.label,
        }


@dataclass(frozen=True)
class PoseDetection:
    box: BoundingBox
    score: float
    keypoints: Tuple[Keypoint, ...]
    kind: DetectionKind = field(default=DetectionKind.POSE, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "box": list(self.box.as_tuple()),
            "score": self.score,
            "keypoints": [[kp.x, kp.y, kp.confidence] for kp in self.keypoints],
        }


@dataclass(frozen=True, eq=False)
class SegmentDetection:
    box: BoundingBox
    score: float
    class_id: int
    label: str
    mask: Mask2D
    kind: DetectionKind = field(default=DetectionKind.SEGMENT, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "box": list(self.box.as_tuple()),
            "score": self.score,
            "class_id": self.class_id,
            "label": self.label,
            "mask": {"width": self.mask.width, "height": self.mask.height},
        }


Detection = Union[ObjectDetection, PoseDetection, SegmentDetection]
