"""
Per-frame decode pipeline.

One call to FramePipeline.process() takes a captured frame through
preprocessing, every enabled inference head, the head decoders and the
aggregator. Heads run concurrently and fail independently: a provider or
layout error degrades that head to zero detections for the frame and is
reported in the FrameResult, never raised.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Union

from decoding.labels import COCO_CLASSES
from decoding.masks import MaskReconstructor
from decoding.objects import ObjectDecoder
from decoding.pose import PoseDecoder
from decoding.segment import SegmentDecoder
from inference.preprocess import preprocess
from inference.provider import HeadOutputs, InferenceProvider, validate_outputs
from models.detection import Detection, Head
from models.errors import HeadError, ProviderFailure
from models.frame import FrameData
from models.stats import FrameResult
from .aggregator import STACKING_ORDER, DetectionAggregator


def _now_ms() -> float:
    return time.perf_counter() * 1000.0


@dataclass(frozen=True)
class PipelineSettings:
    """
    Runtime-adjustable pipeline settings.

    Attributes:
        threshold: Detection-level confidence threshold for every head.
        enabled_heads: Heads run for each frame.
        input_size: Square model input size.
    """
    threshold: float = 0.5
    enabled_heads: FrozenSet[Head] = field(default_factory=lambda: frozenset({Head.OBJECT}))
    input_size: int = 640


class FramePipeline:
    """
    Runs the enabled heads for one frame and merges their detections.

    Example:
        pipeline = FramePipeline(provider, PipelineSettings(threshold=0.4))
        result = await pipeline.process(frame_data)
    """

    def __init__(
        self,
        provider: InferenceProvider,
        settings: Optional[PipelineSettings] = None,
        object_decoder: Optional[ObjectDecoder] = None,
        pose_decoder: Optional[PoseDecoder] = None,
        segment_decoder: Optional[SegmentDecoder] = None,
        aggregator: Optional[DetectionAggregator] = None,
        clock: Callable[[], float] = _now_ms,
    ):
        self._provider = provider
        self._settings = settings or PipelineSettings()
        self.object_decoder = object_decoder or ObjectDecoder()
        self.pose_decoder = pose_decoder or PoseDecoder()
        self.segment_decoder = segment_decoder or SegmentDecoder()
        self.aggregator = aggregator or DetectionAggregator()
        self._clock = clock

    @property
    def provider(self) -> InferenceProvider:
        return self._provider

    def set_provider(self, provider: InferenceProvider) -> None:
        """Install a new provider. Callers must drain in-flight processing first."""
        self._provider = provider

    @property
    def settings(self) -> PipelineSettings:
        return self._settings

    @property
    def threshold(self) -> float:
        return self._settings.threshold

    def set_threshold(self, threshold: float) -> None:
        threshold = float(threshold)
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self._settings = replace(self._settings, threshold=threshold)
        logging.debug(f"Threshold set to {threshold:.2f}")

    @property
    def enabled_heads(self) -> FrozenSet[Head]:
        return self._settings.enabled_heads

    def set_enabled_heads(self, heads: Iterable[Union[Head, str]]) -> None:
        enabled = frozenset(Head.parse(h) for h in heads)
        self._settings = replace(self._settings, enabled_heads=enabled)
        logging.info(f"Enabled heads: {sorted(h.value for h in enabled)}")

    async def process(self, frame_data: FrameData) -> FrameResult:
        """
        Process one frame.

        Settings are read once at the start so a threshold or head change
        made mid-pass applies from the next frame.
        """
        started = self._clock()
        settings = self._settings
        heads = [h for h in STACKING_ORDER if h in settings.enabled_heads]

        per_head = {}
        if heads:
            image = preprocess(frame_data.frame, settings.input_size)
            raw = await asyncio.gather(
                *(self._provider.infer(head, image) for head in heads),
                return_exceptions=True,
            )
            for head, outputs in zip(heads, raw):
                per_head[head] = self._decode_head(head, outputs, frame_data, settings.threshold)

        finished = self._clock()
        return self.aggregator.merge(
            per_head,
            timestamp_ms=finished,
            inference_ms=finished - started,
            frame_index=frame_data.frame_index,
        )

    def _decode_head(
        self,
        head: Head,
        outputs: Union[HeadOutputs, BaseException],
        frame_data: FrameData,
        threshold: float,
    ) -> Union[List[Detection], BaseException]:
        if isinstance(outputs, BaseException):
            error = outputs if isinstance(outputs, HeadError) else ProviderFailure(str(outputs), head)
            logging.warning(f"Frame {frame_data.frame_index}: {head.value} inference failed: {error}")
            return error

        w, h = frame_data.width, frame_data.height
        try:
            validate_outputs(head, outputs)
            if head is Head.OBJECT:
                return self.object_decoder.decode(outputs["scores"], outputs["boxes"], threshold, w, h)
            if head is Head.POSE:
                return self.pose_decoder.decode(outputs["poses"], threshold, w, h)
            return self.segment_decoder.decode(outputs["detections"], outputs["protos"], threshold, w, h)
        except HeadError as e:
            logging.warning(f"Frame {frame_data.frame_index}: dropping {head.value} output: {e}")
            return e
        except Exception as e:
            logging.error(f"Frame {frame_data.frame_index}: {head.value} decode error: {e}")
            return e


def create_pipeline_from_config(config, provider: InferenceProvider) -> FramePipeline:
    """
    Factory function to create a FramePipeline from the typed app config.

    Args:
        config: models.config.Config.
        provider: Inference provider for the enabled heads.
    """
    inference = config.inference
    overrides: Optional[Mapping[int, str]] = inference.class_name_overrides
    settings = PipelineSettings(
        threshold=inference.threshold,
        enabled_heads=frozenset(Head.parse(h) for h in inference.heads),
        input_size=inference.input_size,
    )
    max_det: Optional[int] = inference.max_detections
    class_names: Sequence[str] = COCO_CLASSES
    return FramePipeline(
        provider,
        settings,
        object_decoder=ObjectDecoder(class_names=class_names, id_to_label=overrides, max_detections=max_det),
        pose_decoder=PoseDecoder(max_detections=max_det),
        segment_decoder=SegmentDecoder(
            class_names=class_names,
            id_to_label=overrides,
            max_detections=max_det,
            reconstructor=MaskReconstructor(mask_threshold=config.segment.mask_threshold),
        ),
    )
