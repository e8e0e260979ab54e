"""
Tests for overlay rendering.
"""

import numpy as np

from models.detection import (
    BoundingBox,
    Keypoint,
    Mask2D,
    ObjectDetection,
    PoseDetection,
    SegmentDetection,
)
from models.stats import SchedulerSnapshot
from render.overlay import PALETTE, OverlayRenderer, color_for_class


def _blank(h=120, w=160):
    return np.zeros((h, w, 3), dtype=np.uint8)


class TestPalette:
    def test_cycles_by_class_id(self):
        assert color_for_class(0) == PALETTE[0]
        assert color_for_class(len(PALETTE) + 3) == PALETTE[3]


class TestOverlayRenderer:
    def test_object_box_drawn(self):
        frame = _blank()
        det = ObjectDetection(box=BoundingBox(40, 40, 50, 30), score=0.87, class_id=2, label="car")
        out = OverlayRenderer().draw(frame, [det])
        assert out is frame
        assert tuple(frame[55, 40]) == color_for_class(2)

    def test_label_flips_below_box_at_top_edge(self):
        frame = _blank()
        det = ObjectDetection(box=BoundingBox(10, 0, 50, 30), score=0.5, class_id=0, label="person")
        OverlayRenderer().draw(frame, [det])
        # Label background sits right under the box
        assert tuple(frame[33, 11]) == color_for_class(0)

    def test_mask_blended_inside_box(self):
        frame = _blank()
        alpha = np.full((20, 20), 255, dtype=np.uint8)
        mask = Mask2D(width=20, height=20, alpha=alpha)
        det = SegmentDetection(box=BoundingBox(100, 80, 20, 20), score=0.9, class_id=1, label="bicycle", mask=mask)
        OverlayRenderer(mask_alpha=0.5).draw(frame, [det])
        expected = tuple(int(c * 0.5) for c in color_for_class(1))
        assert tuple(frame[90, 110]) == expected
        assert tuple(frame[10, 10]) == (0, 0, 0)

    def test_mask_clipped_at_frame_edge(self):
        frame = _blank(h=50, w=50)
        mask = Mask2D(width=30, height=30, alpha=np.full((30, 30), 255, dtype=np.uint8))
        det = SegmentDetection(box=BoundingBox(40, 40, 30, 30), score=0.9, class_id=0, label="person", mask=mask)
        OverlayRenderer().draw(frame, [det])
        assert frame[45, 45].any()

    def test_pose_hides_low_confidence_joints(self):
        frame = _blank()
        kps = [Keypoint(20 + i * 5, 60, 0.9) for i in range(17)]
        kps[16] = Keypoint(150, 10, 0.1)
        det = PoseDetection(box=BoundingBox(10, 10, 100, 100), score=0.9, keypoints=tuple(kps))
        OverlayRenderer(visibility_threshold=0.3).draw(frame, [det])
        assert frame[60, 20].any()
        assert not frame[10, 150].any()

    def test_draw_stats(self):
        frame = _blank()
        snapshot = SchedulerSnapshot(
            state="running",
            is_processing=False,
            fps=24,
            average_inference_ms=12.3,
            detection_count=5,
            frames_started=10,
            frames_dropped=2,
        )
        OverlayRenderer().draw_stats(frame, snapshot)
        assert frame[:60, :120].any()
