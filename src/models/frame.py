"""
FrameData model for captured video frames.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np


@dataclass(frozen=True)
class FrameData:
    """
    A captured video frame and where it came from.

    The frame size doubles as the destination pixel space: decoders scale
    normalized model outputs by (width, height).

    Attributes:
        frame: Pixel data, BGR, shape (height, width, 3).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since the source was opened.
        source: Identifier for the camera/video source.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def wrap(
        cls,
        frame: np.ndarray,
        frame_index: int = 0,
        source: Optional[str] = None,
        timestamp: Optional[float] = None,
    ) -> "FrameData":
        """Create FrameData from a BGR array, stamping it now unless told otherwise."""
        h, w = frame.shape[:2]
        return cls(
            frame=frame,
            width=int(w),
            height=int(h),
            timestamp=time.time() if timestamp is None else timestamp,
            frame_index=frame_index,
            source=source,
        )

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    def rgb(self) -> np.ndarray:
        """Return the frame converted to RGB channel order."""
        if self.frame.ndim == 2:
            return cv2.cvtColor(self.frame, cv2.COLOR_GRAY2RGB)
        return cv2.cvtColor(self.frame, cv2.COLOR_BGR2RGB)
