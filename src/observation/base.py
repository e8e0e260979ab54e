"""
ObservationSource interface for pluggable video sources.

A capture session owns exactly one active source at a time; swapping
cameras means closing one source and opening another.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import numpy as np

from models.frame import FrameData


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "front-camera").
        resolution: Target resolution as (width, height). None = source default.
        fps: Target frames per second. None = source default.
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ObservationSource(ABC):
    """
    Abstract base class for frame sources.

    Lifecycle: open() -> read() ... -> close(). close() is safe to call
    more than once. Also usable as a context manager and an iterator.
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the underlying device or file.

        Raises:
            RuntimeError: If the source cannot be opened (device missing,
                permission denied).
        """

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """Return the next frame, or None when no frame is available."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying device or file."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")
        while True:
            frame_data = self.read()
            if frame_data is None:
                break
            yield frame_data


class ArraySource(ObservationSource):
    """
    Source replaying in-memory frames.

    Args:
        frames: BGR frames to replay.
        loop: Restart from the first frame when exhausted.
    """

    def __init__(self, config: ObservationConfig, frames: List[np.ndarray], loop: bool = False):
        super().__init__(config)
        self._frames = list(frames)
        self._loop = loop
        self._pos = 0

    def open(self) -> None:
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self) -> Optional[FrameData]:
        if not self._is_open or not self._frames:
            return None
        if self._pos >= len(self._frames):
            if not self._loop:
                return None
            self._pos = 0
        frame = self._frames[self._pos]
        self._pos += 1
        self._frame_index += 1
        return FrameData.wrap(frame, frame_index=self._frame_index, source=self.source_id)

    def close(self) -> None:
        self._is_open = False
