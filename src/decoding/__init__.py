"""
Decoders turning raw head tensors into typed detections.

- object: per-slot argmax over class scores, center/size boxes
- pose: 17-keypoint rows with corner boxes
- segment: corner boxes plus mask coefficients over shared prototypes
"""

from .labels import COCO_CLASSES, resolve_label
from .objects import ObjectDecoder, decode_objects
from .pose import (
    NUM_KEYPOINTS,
    POSE_ROW_STRIDE,
    SKELETON,
    PoseDecoder,
    decode_poses,
    drawable_bones,
    visible_keypoints,
)
from .masks import MaskReconstructor
from .segment import (
    NUM_MASK_COEFFS,
    SEGMENT_ROW_STRIDE,
    SegmentCandidate,
    SegmentDecoder,
    decode_segments,
    round_class_id,
)

__all__ = [
    "COCO_CLASSES",
    "resolve_label",
    "ObjectDecoder",
    "decode_objects",
    "NUM_KEYPOINTS",
    "POSE_ROW_STRIDE",
    "SKELETON",
    "PoseDecoder",
    "decode_poses",
    "drawable_bones",
    "visible_keypoints",
    "MaskReconstructor",
    "NUM_MASK_COEFFS",
    "SEGMENT_ROW_STRIDE",
    "SegmentCandidate",
    "SegmentDecoder",
    "decode_segments",
    "round_class_id",
]
