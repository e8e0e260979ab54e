"""
Merges per-head decoder output for one frame.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Union

from models.detection import Detection, Head
from models.stats import FrameResult, FrameStats

# Segmentation renders underneath boxes, poses on top.
STACKING_ORDER = (Head.SEGMENT, Head.OBJECT, Head.POSE)

HeadContribution = Union[Sequence[Detection], BaseException, None]


class DetectionAggregator:
    """
    Merges decoded detections from every enabled head into one ordered list.

    A head that failed (an exception in place of its detections) or produced
    nothing contributes zero detections; aggregation itself never fails.
    """

    def merge(
        self,
        per_head: Mapping[Head, HeadContribution],
        timestamp_ms: float,
        inference_ms: float,
        frame_index: int = 0,
    ) -> FrameResult:
        detections: List[Detection] = []
        errors: Dict[Head, str] = {}

        for head in STACKING_ORDER:
            contribution: Optional[HeadContribution] = per_head.get(head)
            if contribution is None:
                continue
            if isinstance(contribution, BaseException):
                errors[head] = str(contribution) or type(contribution).__name__
                continue
            detections.extend(contribution)

        if errors:
            logging.debug(f"Frame {frame_index}: heads with errors: {sorted(h.value for h in errors)}")

        return FrameResult(
            detections=detections,
            stats=FrameStats(
                timestamp_ms=timestamp_ms,
                inference_ms=inference_ms,
                detection_count=len(detections),
            ),
            errors=errors,
            frame_index=frame_index,
        )
