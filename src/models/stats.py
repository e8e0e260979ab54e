"""
Per-frame statistics and scheduler snapshots.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterator, List

from .detection import Detection, Head


@dataclass(frozen=True)
class FrameStats:
    """
    Statistics for one processed frame. Transient; not retained.

    Attributes:
        timestamp_ms: Monotonic timestamp when the frame finished processing.
        inference_ms: Wall-clock duration of preprocess + inference + decode.
        detection_count: Number of merged detections.
    """
    timestamp_ms: float
    inference_ms: float
    detection_count: int


@dataclass(frozen=True)
class FrameResult:
    """Merged, ordered detections for one frame plus its stats."""
    detections: List[Detection]
    stats: FrameStats
    errors: Dict[Head, str] = field(default_factory=dict)
    frame_index: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class SchedulerSnapshot:
    """Read-only view of scheduler state for polling callers."""
    state: str
    is_processing: bool
    fps: int
    average_inference_ms: float
    detection_count: int
    frames_started: int
    frames_dropped: int


class LatencyWindow:
    """Bounded ring buffer of recent latencies; the oldest sample is evicted first."""

    def __init__(self, capacity: int = 10):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._samples: Deque[float] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen

    def add(self, value: float) -> None:
        self._samples.append(float(value))

    def mean(self) -> float:
        if not self._samples:
            return 0.0
        return sum(self._samples) / len(self._samples)

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[float]:
        return iter(list(self._samples))
