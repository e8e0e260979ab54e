"""
Instance mask reconstruction from prototype masks.

An instance mask is a linear combination of the shared prototype masks
weighted by the instance's coefficients, passed through a sigmoid:

    alpha(i, j) = sigmoid(sum_k coeffs[k] * protos[k, i, j])

The result lives on the prototype grid (e.g. 160x160, covering the whole
model input) and is resampled into the detection box before drawing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Union

import cv2
import numpy as np

from models.detection import BoundingBox, Head, Mask2D
from models.errors import ShapeMismatch
from models.tensor import TensorView


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return (1.0 / (1.0 + np.exp(-x))).astype(np.float32)


def _proto_array(protos: Union[TensorView, np.ndarray]) -> np.ndarray:
    if isinstance(protos, TensorView):
        protos = protos.squeeze_batch().as_array() if protos.ndim == 4 else protos.as_array()
    protos = np.asarray(protos, dtype=np.float32)
    if protos.ndim != 3:
        raise ShapeMismatch(f"Prototypes must be [K, Hp, Wp], got {protos.shape}", Head.SEGMENT)
    return protos


@dataclass
class MaskReconstructor:
    """
    Combines per-instance coefficients with prototype tensors.

    Attributes:
        mask_threshold: Binarize probabilities at this value; None keeps
            continuous opacity.
    """
    mask_threshold: Optional[float] = None

    def reconstruct(self, coeffs, protos: Union[TensorView, np.ndarray]) -> np.ndarray:
        """
        Return the (Hp, Wp) probability grid for one instance.

        Raises:
            ShapeMismatch: If len(coeffs) != protos.shape[0].
        """
        coeffs = np.asarray(coeffs, dtype=np.float32).reshape(-1)
        return self.reconstruct_batch(coeffs[np.newaxis, :], protos)[0]

    def reconstruct_batch(self, coeffs, protos: Union[TensorView, np.ndarray]) -> np.ndarray:
        """Return (M, Hp, Wp) probabilities for M coefficient rows in one product."""
        grid = _proto_array(protos)
        coeffs = np.asarray(coeffs, dtype=np.float32)
        if coeffs.ndim != 2:
            raise ShapeMismatch(f"Coefficients must be [M, K], got {coeffs.shape}", Head.SEGMENT)
        k, hp, wp = grid.shape
        if coeffs.shape[1] != k:
            raise ShapeMismatch(
                f"{coeffs.shape[1]} mask coefficients do not match {k} prototypes", Head.SEGMENT
            )
        logits = coeffs @ grid.reshape(k, hp * wp)
        return _sigmoid(logits).reshape(coeffs.shape[0], hp, wp)

    def to_mask(self, prob: np.ndarray) -> Mask2D:
        """Quantize a prototype-grid probability map; dimensions are unchanged."""
        return Mask2D.from_probabilities(prob, self.mask_threshold)

    def resample(self, prob: np.ndarray, box: BoundingBox, frame_w: int, frame_h: int) -> Mask2D:
        """
        Resample a prototype-grid probability map into the box extent.

        The grid covers the whole frame; the box region, clipped to the
        frame, is sampled as if the grid had been scaled to (frame_w, frame_h).
        Zero-area or fully off-frame boxes give an empty mask.
        """
        prob = np.asarray(prob, dtype=np.float32)
        return self.resample_batch(prob[np.newaxis], [box], frame_w, frame_h)[0]

    def resample_batch(self, probs: np.ndarray, boxes, frame_w: int, frame_h: int):
        """
        Resample (M, Hp, Wp) maps into their M boxes.

        Each box is sampled straight from the prototype grid with one affine
        warp, so memory and time scale with the box area rather than the
        frame size and there is no cap on the instance count.
        """
        probs = np.asarray(probs, dtype=np.float32)
        if probs.ndim != 3 or probs.shape[0] != len(boxes):
            raise ValueError(f"Expected {len(boxes)} probability maps, got shape {probs.shape}")
        frame_w, frame_h = int(frame_w), int(frame_h)
        _, hp, wp = probs.shape
        scale_x = wp / float(frame_w)
        scale_y = hp / float(frame_h)
        masks = []
        for prob, box in zip(probs, boxes):
            x0 = max(0, int(math.floor(box.x)))
            y0 = max(0, int(math.floor(box.y)))
            x1 = min(frame_w, int(math.ceil(box.x2)))
            y1 = min(frame_h, int(math.ceil(box.y2)))
            if x1 <= x0 or y1 <= y0:
                masks.append(Mask2D.empty())
                continue
            # Output pixel (u, v) reads the grid where a full-frame bilinear
            # resize would have put frame pixel (x0 + u, y0 + v).
            to_grid = np.array(
                [
                    [scale_x, 0.0, (x0 + 0.5) * scale_x - 0.5],
                    [0.0, scale_y, (y0 + 0.5) * scale_y - 0.5],
                ],
                dtype=np.float64,
            )
            region = cv2.warpAffine(
                np.ascontiguousarray(prob),
                to_grid,
                (x1 - x0, y1 - y0),
                flags=cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP,
                borderMode=cv2.BORDER_REPLICATE,
            )
            masks.append(Mask2D.from_probabilities(region, self.mask_threshold))
        return masks
