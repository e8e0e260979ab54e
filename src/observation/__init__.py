"""
Observation layer for pluggable video sources.

Each source implements the ObservationSource interface and returns
FrameData objects; the capture session holds one active source at a time.
"""

from .base import ArraySource, ObservationConfig, ObservationSource
from .opencv_source import OpenCVSource, OpenCVSourceConfig

__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "ArraySource",
    "OpenCVSource",
    "OpenCVSourceConfig",
]
