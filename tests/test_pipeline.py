"""
Tests for the frame pipeline.
"""

import asyncio

import pytest
import numpy as np

from inference.provider import StaticProvider
from models.config import Config
from models.detection import DetectionKind, Head
from models.errors import ProviderFailure
from models.frame import FrameData
from models.tensor import TensorView
from pipeline.engine import FramePipeline, PipelineSettings, create_pipeline_from_config


ALL_HEADS = frozenset({Head.OBJECT, Head.POSE, Head.SEGMENT})


@pytest.fixture
def frame_data(frame):
    return FrameData.wrap(frame, frame_index=7, source="test")


@pytest.fixture
def provider(object_outputs, pose_outputs, segment_outputs):
    return StaticProvider({
        Head.OBJECT: object_outputs,
        Head.POSE: pose_outputs,
        Head.SEGMENT: segment_outputs,
    })


def _pipeline(provider, heads=ALL_HEADS, threshold=0.5):
    return FramePipeline(provider, PipelineSettings(threshold=threshold, enabled_heads=frozenset(heads), input_size=64))


class TestFramePipeline:
    def test_all_heads_merged_in_order(self, provider, frame_data):
        result = asyncio.run(_pipeline(provider).process(frame_data))
        assert [d.kind for d in result.detections] == [
            DetectionKind.SEGMENT,
            DetectionKind.OBJECT,
            DetectionKind.POSE,
        ]
        assert result.frame_index == 7
        assert result.stats.detection_count == 3
        assert result.ok

    def test_object_scaled_to_frame(self, provider, frame_data):
        result = asyncio.run(_pipeline(provider, {Head.OBJECT}).process(frame_data))
        (det,) = result.detections
        assert det.label == "car"
        assert det.box.as_tuple() == pytest.approx((256.0, 144.0, 128.0, 192.0))

    def test_only_enabled_heads_run(self, provider, frame_data):
        asyncio.run(_pipeline(provider, {Head.POSE}).process(frame_data))
        assert provider.calls == {Head.OBJECT: 0, Head.POSE: 1, Head.SEGMENT: 0}

    def test_no_heads_gives_empty_result(self, provider, frame_data):
        result = asyncio.run(_pipeline(provider, set()).process(frame_data))
        assert result.detections == []
        assert sum(provider.calls.values()) == 0

    def test_failing_head_is_isolated(self, object_outputs, segment_outputs, frame_data):
        provider = StaticProvider({
            Head.OBJECT: object_outputs,
            Head.POSE: ProviderFailure("session lost", Head.POSE),
            Head.SEGMENT: segment_outputs,
        })
        result = asyncio.run(_pipeline(provider).process(frame_data))
        assert [d.kind for d in result.detections] == [DetectionKind.SEGMENT, DetectionKind.OBJECT]
        assert Head.POSE in result.errors

    def test_shape_mismatch_drops_head(self, object_outputs, frame_data):
        provider = StaticProvider({
            Head.OBJECT: object_outputs,
            Head.POSE: {"poses": TensorView.from_array(np.zeros((2, 56)))},
        })
        result = asyncio.run(_pipeline(provider, {Head.OBJECT, Head.POSE}).process(frame_data))
        assert [d.kind for d in result.detections] == [DetectionKind.OBJECT]
        assert "stride" in result.errors[Head.POSE]

    def test_missing_output_key(self, frame_data):
        provider = StaticProvider({Head.OBJECT: {"scores": np.zeros((1, 3))}})
        result = asyncio.run(_pipeline(provider, {Head.OBJECT}).process(frame_data))
        assert result.detections == []
        assert "boxes" in result.errors[Head.OBJECT]

    def test_threshold_applies_to_next_pass(self, provider, frame_data):
        pipeline = _pipeline(provider, {Head.OBJECT})
        assert len(asyncio.run(pipeline.process(frame_data)).detections) == 1
        pipeline.set_threshold(0.8)
        assert asyncio.run(pipeline.process(frame_data)).detections == []

    def test_threshold_bounds(self, provider):
        with pytest.raises(ValueError):
            _pipeline(provider).set_threshold(1.5)

    def test_set_enabled_heads_accepts_names(self, provider):
        pipeline = _pipeline(provider)
        pipeline.set_enabled_heads(["pose", "seg"])
        assert pipeline.enabled_heads == frozenset({Head.POSE, Head.SEGMENT})


class TestCreatePipelineFromConfig:
    def test_settings_from_config(self, valid_config, provider):
        valid_config["inference"]["class_name_overrides"] = {2: "vehicle"}
        cfg = Config.from_dict(valid_config)
        pipeline = create_pipeline_from_config(cfg, provider)
        assert pipeline.threshold == 0.5
        assert pipeline.enabled_heads == frozenset({Head.OBJECT, Head.POSE})
        assert pipeline.object_decoder.id_to_label == {2: "vehicle"}
        assert pipeline.segment_decoder.reconstructor.mask_threshold is None
