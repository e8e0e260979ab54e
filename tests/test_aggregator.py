"""
Tests for DetectionAggregator.
"""

from models.detection import BoundingBox, Head, Keypoint, Mask2D, ObjectDetection, PoseDetection, SegmentDetection
from models.errors import ShapeMismatch
from pipeline.aggregator import STACKING_ORDER, DetectionAggregator


def _obj(label="car"):
    return ObjectDetection(box=BoundingBox(0, 0, 10, 10), score=0.9, class_id=2, label=label)


def _pose():
    kps = tuple(Keypoint(0, 0, 0.9) for _ in range(17))
    return PoseDetection(box=BoundingBox(0, 0, 10, 10), score=0.8, keypoints=kps)


def _seg():
    return SegmentDetection(box=BoundingBox(0, 0, 5, 5), score=0.7, class_id=0, label="person", mask=Mask2D.empty())


class TestDetectionAggregator:
    def test_stacking_order(self):
        assert STACKING_ORDER == (Head.SEGMENT, Head.OBJECT, Head.POSE)

    def test_merges_in_stacking_order(self):
        per_head = {Head.POSE: [_pose()], Head.OBJECT: [_obj("a"), _obj("b")], Head.SEGMENT: [_seg()]}
        result = DetectionAggregator().merge(per_head, timestamp_ms=100.0, inference_ms=12.5, frame_index=4)
        kinds = [d.kind.value for d in result.detections]
        assert kinds == ["segment", "object", "object", "pose"]
        assert [d.label for d in result.detections if d.kind.value == "object"] == ["a", "b"]
        assert result.stats.detection_count == 4
        assert result.stats.inference_ms == 12.5
        assert result.frame_index == 4
        assert result.ok

    def test_failed_head_contributes_nothing(self):
        per_head = {Head.OBJECT: [_obj()], Head.POSE: ShapeMismatch("bad stride", Head.POSE)}
        result = DetectionAggregator().merge(per_head, timestamp_ms=0.0, inference_ms=1.0)
        assert len(result.detections) == 1
        assert result.errors == {Head.POSE: "[pose] bad stride"}
        assert not result.ok

    def test_empty_and_missing_heads(self):
        result = DetectionAggregator().merge({Head.OBJECT: [], Head.SEGMENT: None}, timestamp_ms=0.0, inference_ms=0.0)
        assert result.detections == []
        assert result.stats.detection_count == 0
        assert result.errors == {}
