"""
Segmentation decoder.

Detection rows are [N, 38]: 4 normalized corners, a score, a float class id
and 32 mask coefficients. The coefficients are combined with the frame's
shared prototype tensor [32, Hp, Wp] by the MaskReconstructor.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

import numpy as np

from models.detection import BoundingBox, Head, SegmentDetection
from models.errors import ShapeMismatch
from models.tensor import TensorView
from .labels import COCO_CLASSES, resolve_label
from .masks import MaskReconstructor

NUM_MASK_COEFFS = 32
SEGMENT_ROW_STRIDE = 4 + 1 + 1 + NUM_MASK_COEFFS  # 38
_SCORE = 4
_CLASS = 5
_COEFFS = 6


@dataclass(frozen=True, eq=False)
class SegmentCandidate:
    box: BoundingBox
    score: float
    class_id: int
    coeffs: np.ndarray


def round_class_id(raw: float) -> int:
    """Round half up; the class field arrives as a float and must not be truncated."""
    return int(math.floor(float(raw) + 0.5))


def decode_segments(
    tensor: TensorView,
    threshold: float,
    frame_w: float,
    frame_h: float,
    max_detections: Optional[int] = None,
) -> List[SegmentCandidate]:
    """
    Decode admitted segmentation rows without building masks.

    Raises:
        ShapeMismatch: If the row stride is not 38.
    """
    try:
        rows = tensor.rows(SEGMENT_ROW_STRIDE)
    except ShapeMismatch as e:
        raise ShapeMismatch(str(e), Head.SEGMENT) from e
    if max_detections is not None:
        rows = rows[:max_detections]

    keep = np.flatnonzero(rows[:, _SCORE] >= np.float32(threshold))
    candidates: List[SegmentCandidate] = []
    for i in keep:
        row = rows[i]
        x1, y1, x2, y2 = (float(v) for v in row[:4])
        candidates.append(
            SegmentCandidate(
                box=BoundingBox.from_corners(x1, y1, x2, y2, frame_w, frame_h),
                score=float(row[_SCORE]),
                class_id=round_class_id(row[_CLASS]),
                coeffs=np.array(row[_COEFFS:], dtype=np.float32),
            )
        )
    return candidates


@dataclass
class SegmentDecoder:
    """
    Segmentation head decoder producing SegmentDetections with box-aligned masks.

    The prototype count must equal the coefficient count; otherwise the
    whole head is rejected for the frame with ShapeMismatch.
    """
    class_names: Sequence[str] = COCO_CLASSES
    id_to_label: Optional[Mapping] = None
    max_detections: Optional[int] = None
    reconstructor: MaskReconstructor = field(default_factory=MaskReconstructor)

    def decode(
        self,
        detections: TensorView,
        protos: TensorView,
        threshold: float,
        frame_w: int,
        frame_h: int,
    ) -> List[SegmentDetection]:
        proto_view = protos.squeeze_batch() if protos.ndim == 4 else protos
        if proto_view.ndim != 3:
            raise ShapeMismatch(f"Prototypes must be [K, Hp, Wp], got {protos.shape}", Head.SEGMENT)
        if proto_view.shape[0] != NUM_MASK_COEFFS:
            raise ShapeMismatch(
                f"{NUM_MASK_COEFFS} mask coefficients do not match {proto_view.shape[0]} prototypes",
                Head.SEGMENT,
            )

        candidates = decode_segments(detections, threshold, frame_w, frame_h, self.max_detections)
        if not candidates:
            return []

        coeffs = np.stack([c.coeffs for c in candidates])
        probs = self.reconstructor.reconstruct_batch(coeffs, proto_view)
        masks = self.reconstructor.resample_batch(probs, [c.box for c in candidates], frame_w, frame_h)

        return [
            SegmentDetection(
                box=c.box,
                score=c.score,
                class_id=c.class_id,
                label=resolve_label(c.class_id, self.class_names, self.id_to_label),
                mask=mask,
            )
            for c, mask in zip(candidates, masks)
        ]
