"""
Runtime layer: the capture session that owns a camera, a provider and the
scheduled decode pipeline.
"""

from .session import CaptureSession

__all__ = ["CaptureSession"]
