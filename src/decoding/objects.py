"""
Object detection decoder.

Decodes a per-slot class score tensor [N, C] and a normalized center/size
box tensor [N, 4] into pixel-space ObjectDetections. Each slot yields at
most one detection (argmax over classes, not multi-label) and no
cross-slot suppression is applied: output order equals slot order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

import numpy as np

from models.detection import BoundingBox, Head, ObjectDetection
from models.errors import ShapeMismatch
from models.tensor import TensorView
from .labels import COCO_CLASSES, LabelOverride, resolve_label


def best_class_per_slot(scores: np.ndarray):
    """
    Return (max_score, max_class) arrays for an [N, C] score matrix.

    The running maximum starts at zero, so a row with no positive score
    yields (0.0, 0). On ties the lowest class id wins. NaN scores never win.
    """
    scores = np.nan_to_num(scores, nan=0.0)
    n = scores.shape[0]
    if scores.shape[1] == 0:
        return np.zeros(n, dtype=np.float32), np.zeros(n, dtype=np.int64)
    max_class = np.argmax(scores, axis=1)
    max_score = scores[np.arange(n), max_class].astype(np.float32)
    nonpositive = ~(max_score > 0)
    max_score[nonpositive] = 0.0
    max_class[nonpositive] = 0
    return max_score, max_class


def decode_objects(
    scores: TensorView,
    boxes: TensorView,
    threshold: float,
    frame_w: float,
    frame_h: float,
    class_names: Sequence[str] = COCO_CLASSES,
    id_to_label: Optional[LabelOverride] = None,
    max_detections: Optional[int] = None,
) -> List[ObjectDetection]:
    """
    Decode object detections.

    Args:
        scores: Class probabilities, shape [N, C] (or [1, N, C]).
        boxes: Normalized (cx, cy, w, h) per slot, shape [N, 4] (or [1, N, 4]).
        threshold: Minimum best-class score; a score equal to it is admitted.
        frame_w: Destination width in pixels.
        frame_h: Destination height in pixels.
        class_names: Static label table indexed by class id.
        id_to_label: Optional model-specific label override.
        max_detections: Scan at most this many slots.

    Raises:
        ShapeMismatch: If the tensors are not [N, C] and [N, 4] with equal N.
    """
    score_view = scores.squeeze_batch() if scores.ndim == 3 else scores
    if score_view.ndim != 2:
        raise ShapeMismatch(f"Object scores must be [N, C], got {scores.shape}", Head.OBJECT)
    try:
        box_rows = boxes.rows(4)
    except ShapeMismatch as e:
        raise ShapeMismatch(str(e), Head.OBJECT) from e
    score_rows = score_view.as_array()
    if score_rows.shape[0] != box_rows.shape[0]:
        raise ShapeMismatch(
            f"Object scores have {score_rows.shape[0]} slots but boxes have {box_rows.shape[0]}",
            Head.OBJECT,
        )

    if max_detections is not None:
        score_rows = score_rows[:max_detections]
        box_rows = box_rows[:max_detections]

    max_score, max_class = best_class_per_slot(score_rows)
    keep = np.flatnonzero(max_score >= np.float32(threshold))

    detections: List[ObjectDetection] = []
    for i in keep:
        cx, cy, w, h = (float(v) for v in box_rows[i])
        class_id = int(max_class[i])
        detections.append(
            ObjectDetection(
                box=BoundingBox.from_center(cx, cy, w, h, frame_w, frame_h),
                score=float(max_score[i]),
                class_id=class_id,
                label=resolve_label(class_id, class_names, id_to_label),
            )
        )
    return detections


@dataclass
class ObjectDecoder:
    """
    Object head decoder bound to its label tables.

    Attributes:
        class_names: Static label table.
        id_to_label: Model-shipped label map, consulted first.
        max_detections: Candidate slots scanned.
    """
    class_names: Sequence[str] = COCO_CLASSES
    id_to_label: Optional[Mapping] = None
    max_detections: Optional[int] = None

    def decode(
        self,
        scores: TensorView,
        boxes: TensorView,
        threshold: float,
        frame_w: float,
        frame_h: float,
    ) -> List[ObjectDetection]:
        return decode_objects(
            scores,
            boxes,
            threshold,
            frame_w,
            frame_h,
            class_names=self.class_names,
            id_to_label=self.id_to_label,
            max_detections=self.max_detections,
        )
