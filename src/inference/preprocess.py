"""
Frame preprocessing for the model input.
"""

from __future__ import annotations

import cv2
import numpy as np


def preprocess(frame_bgr: np.ndarray, input_size: int = 640) -> np.ndarray:
    """
    Resize a BGR frame to the square model input and lay it out as NCHW.

    Returns:
        float32 array of shape (1, 3, input_size, input_size), RGB in [0, 1].
    """
    if frame_bgr is None or frame_bgr.size == 0:
        raise ValueError("Cannot preprocess an empty frame")
    if frame_bgr.ndim == 2:
        frame_bgr = cv2.cvtColor(frame_bgr, cv2.COLOR_GRAY2BGR)
    resized = cv2.resize(frame_bgr, (input_size, input_size), interpolation=cv2.INTER_LINEAR)
    rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)
    chw = rgb.astype(np.float32).transpose(2, 0, 1) / 255.0
    return np.ascontiguousarray(chw[np.newaxis, ...])
