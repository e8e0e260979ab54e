"""
Overlay rendering.

Draws a FrameResult's detections onto a BGR frame in the order the
aggregator produced them, so masks sit underneath boxes and skeletons.
"""

from __future__ import annotations

import math
from typing import Iterable, Tuple

import cv2
import numpy as np

from decoding.pose import DEFAULT_VISIBILITY_THRESHOLD, drawable_bones, visible_keypoints
from models.detection import (
    Detection,
    ObjectDetection,
    PoseDetection,
    SegmentDetection,
)
from models.stats import SchedulerSnapshot

Color = Tuple[int, int, int]

# BGR
PALETTE: Tuple[Color, ...] = (
    (56, 56, 255),
    (151, 157, 255),
    (31, 112, 255),
    (29, 178, 255),
    (49, 210, 207),
    (10, 249, 72),
    (23, 204, 146),
    (134, 219, 61),
    (52, 147, 26),
    (187, 212, 0),
    (168, 153, 44),
    (255, 194, 0),
    (147, 69, 52),
    (255, 115, 100),
    (236, 24, 0),
    (255, 56, 132),
    (133, 0, 82),
    (255, 56, 203),
    (200, 149, 255),
    (199, 55, 255),
)

COLOR_SKELETON: Color = (0, 255, 0)
COLOR_JOINT: Color = (0, 0, 255)
COLOR_TEXT: Color = (255, 255, 255)
COLOR_TEXT_BG: Color = (0, 0, 0)

FONT = cv2.FONT_HERSHEY_SIMPLEX


def color_for_class(class_id: int) -> Color:
    return PALETTE[class_id % len(PALETTE)]


class OverlayRenderer:
    """
    Stateless drawer for detections and scheduler stats.

    Args:
        visibility_threshold: Minimum keypoint confidence to draw joints and bones.
        mask_alpha: Maximum blend weight of a fully opaque mask cell.
        box_thickness: Line thickness for boxes.
    """

    def __init__(
        self,
        visibility_threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
        mask_alpha: float = 0.5,
        box_thickness: int = 2,
    ):
        self.visibility_threshold = visibility_threshold
        self.mask_alpha = mask_alpha
        self.box_thickness = box_thickness

    def draw(self, frame: np.ndarray, detections: Iterable[Detection]) -> np.ndarray:
        """Draw detections in place and return the frame."""
        for det in detections:
            if isinstance(det, SegmentDetection):
                self._draw_segment(frame, det)
            elif isinstance(det, ObjectDetection):
                self._draw_object(frame, det)
            elif isinstance(det, PoseDetection):
                self._draw_pose(frame, det)
        return frame

    def draw_stats(self, frame: np.ndarray, snapshot: SchedulerSnapshot) -> np.ndarray:
        lines = [
            f"FPS: {snapshot.fps}",
            f"Inference: {snapshot.average_inference_ms:.1f} ms",
            f"Detections: {snapshot.detection_count}",
        ]
        y = 20
        for text in lines:
            (text_w, text_h), _ = cv2.getTextSize(text, FONT, 0.5, 1)
            cv2.rectangle(frame, (5, y - text_h - 4), (5 + text_w + 6, y + 4), COLOR_TEXT_BG, -1)
            cv2.putText(frame, text, (8, y), FONT, 0.5, COLOR_TEXT, 1)
            y += text_h + 10
        return frame

    # -- per kind ----------------------------------------------------------

    def _draw_object(self, frame: np.ndarray, det: ObjectDetection) -> None:
        color = color_for_class(det.class_id)
        x1, y1, x2, y2 = det.box.as_int_tuple()
        cv2.rectangle(frame, (x1, y1), (x2, y2), color, self.box_thickness)
        self._draw_label(frame, f"{det.label} {round(det.score * 100)}%", x1, y1, y2, color)

    def _draw_segment(self, frame: np.ndarray, det: SegmentDetection) -> None:
        color = color_for_class(det.class_id)
        mask = det.mask
        if mask.width > 0 and mask.height > 0:
            x0 = max(0, int(math.floor(det.box.x)))
            y0 = max(0, int(math.floor(det.box.y)))
            h = min(mask.height, frame.shape[0] - y0)
            w = min(mask.width, frame.shape[1] - x0)
            if h > 0 and w > 0:
                region = frame[y0:y0 + h, x0:x0 + w].astype(np.float32)
                weight = (mask.alpha[:h, :w].astype(np.float32) / 255.0 * self.mask_alpha)[..., None]
                tint = np.array(color, dtype=np.float32)
                frame[y0:y0 + h, x0:x0 + w] = (region * (1.0 - weight) + tint * weight).astype(frame.dtype)

        x1, y1, x2, y2 = det.box.as_int_tuple()
        cv2.rectangle(frame, (x1, y1), (x2, y2), color, 1)
        self._draw_label(frame, f"{det.label} {round(det.score * 100)}%", x1, y1, y2, color)

    def _draw_pose(self, frame: np.ndarray, det: PoseDetection) -> None:
        thr = self.visibility_threshold
        for a, b in drawable_bones(det, thr):
            cv2.line(frame, (int(a.x), int(a.y)), (int(b.x), int(b.y)), COLOR_SKELETON, 2)
        for kp in visible_keypoints(det, thr):
            cv2.circle(frame, (int(kp.x), int(kp.y)), 3, COLOR_JOINT, -1)

    def _draw_label(self, frame: np.ndarray, label: str, x1: int, y1: int, y2: int, color: Color) -> None:
        font_scale = 0.5
        thickness = 1
        (text_w, text_h), _ = cv2.getTextSize(label, FONT, font_scale, thickness)
        top = y1 - text_h - 6
        if top < 0:
            # Flip below the box when the label would leave the frame
            top = y2
        cv2.rectangle(frame, (x1, top), (x1 + text_w + 4, top + text_h + 6), color, -1)
        cv2.putText(frame, label, (x1 + 2, top + text_h + 2), FONT, font_scale, COLOR_TEXT, thickness)
