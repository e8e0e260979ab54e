"""
Pose (keypoint) decoder and skeleton topology.

Each candidate row packs 4 normalized corner fields (x1, y1, x2, y2), one
score, one reserved field, then 17 (x, y, confidence) keypoint triples.
Unlike the object head, boxes arrive as two absolute corners.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from models.detection import BoundingBox, Head, Keypoint, PoseDetection
from models.errors import ShapeMismatch
from models.tensor import TensorView

NUM_KEYPOINTS = 17
POSE_ROW_STRIDE = 4 + 1 + 1 + NUM_KEYPOINTS * 3  # 57
_SCORE = 4
_KEYPOINTS = 6

# Bone pairs over keypoint indices: head, arms, torso, legs.
SKELETON: Tuple[Tuple[int, int], ...] = (
    (0, 1), (0, 2), (1, 3), (2, 4),
    (5, 6), (5, 7), (7, 9), (6, 8), (8, 10),
    (5, 11), (6, 12), (11, 12),
    (11, 13), (13, 15), (12, 14), (14, 16),
)

DEFAULT_VISIBILITY_THRESHOLD = 0.3


def decode_poses(
    tensor: TensorView,
    threshold: float,
    frame_w: float,
    frame_h: float,
    max_detections: Optional[int] = None,
) -> List[PoseDetection]:
    """
    Decode pose detections from an [N, 57] tensor.

    All 17 keypoints of every admitted row are returned regardless of their
    individual confidences; visibility filtering happens at render time.

    Raises:
        ShapeMismatch: If the row stride is not 57.
    """
    try:
        rows = tensor.rows(POSE_ROW_STRIDE)
    except ShapeMismatch as e:
        raise ShapeMismatch(str(e), Head.POSE) from e
    if max_detections is not None:
        rows = rows[:max_detections]

    keep = np.flatnonzero(rows[:, _SCORE] >= np.float32(threshold))
    detections: List[PoseDetection] = []
    for i in keep:
        row = rows[i]
        x1, y1, x2, y2 = (float(v) for v in row[:4])
        triples = row[_KEYPOINTS:].reshape(NUM_KEYPOINTS, 3)
        keypoints = tuple(
            Keypoint(x=float(kx) * frame_w, y=float(ky) * frame_h, confidence=float(kc))
            for kx, ky, kc in triples
        )
        detections.append(
            PoseDetection(
                box=BoundingBox.from_corners(x1, y1, x2, y2, frame_w, frame_h),
                score=float(row[_SCORE]),
                keypoints=keypoints,
            )
        )
    return detections


def drawable_bones(
    pose: PoseDetection, visibility_threshold: float = DEFAULT_VISIBILITY_THRESHOLD
) -> List[Tuple[Keypoint, Keypoint]]:
    """Bones whose endpoints both clear the visibility threshold, in skeleton order."""
    kps = pose.keypoints
    return [
        (kps[a], kps[b])
        for a, b in SKELETON
        if kps[a].is_visible(visibility_threshold) and kps[b].is_visible(visibility_threshold)
    ]


def visible_keypoints(
    pose: PoseDetection, visibility_threshold: float = DEFAULT_VISIBILITY_THRESHOLD
) -> List[Keypoint]:
    return [kp for kp in pose.keypoints if kp.is_visible(visibility_threshold)]


@dataclass
class PoseDecoder:
    max_detections: Optional[int] = None

    def decode(self, tensor: TensorView, threshold: float, frame_w: float, frame_h: float) -> List[PoseDetection]:
        return decode_poses(tensor, threshold, frame_w, frame_h, max_detections=self.max_detections)
