"""
Pipeline module for the multi-head vision runtime.

The pipeline orchestrates the per-frame flow:
- Preprocessing and inference for every enabled head
- Decoding each head's tensors into typed detections
- Merging heads into one ordered detection list (DetectionAggregator)
- Pacing passes against display ticks (FrameScheduler)
"""

from .aggregator import STACKING_ORDER, DetectionAggregator
from .engine import FramePipeline, PipelineSettings, create_pipeline_from_config
from .scheduler import FrameScheduler, SchedulerEvent, SchedulerState

__all__ = [
    "STACKING_ORDER",
    "DetectionAggregator",
    "FramePipeline",
    "PipelineSettings",
    "create_pipeline_from_config",
    "FrameScheduler",
    "SchedulerEvent",
    "SchedulerState",
]
