"""OpenCV overlay drawing for decoded detections."""

from .overlay import PALETTE, OverlayRenderer, color_for_class

__all__ = ["PALETTE", "OverlayRenderer", "color_for_class"]
