"""
Read-only tensor view over a flat float32 buffer.

Head outputs arrive as flat buffers plus a shape. TensorView interprets them
without copying; it never holds decode state and callers must not keep one
past the decode call that received it.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from operator import mul
from typing import Sequence, Tuple

import numpy as np

from .errors import ShapeMismatch


def _product(shape: Sequence[int]) -> int:
    return reduce(mul, shape, 1)


@dataclass(frozen=True)
class TensorView:
    """
    A typed numeric buffer with a fixed shape.

    Attributes:
        shape: Dimensions, outermost first.
        data: Flat float32 buffer, len(data) == product(shape).
    """
    shape: Tuple[int, ...]
    data: np.ndarray

    def __post_init__(self):
        shape = tuple(int(d) for d in self.shape)
        if any(d < 0 for d in shape):
            raise ShapeMismatch(f"Negative dimension in shape {shape}")
        data = np.asarray(self.data, dtype=np.float32).reshape(-1)
        if data.size != _product(shape):
            raise ShapeMismatch(
                f"Shape {shape} needs {_product(shape)} values, buffer has {data.size}"
            )
        if data.flags.writeable:
            data = data.view()
            data.flags.writeable = False
        object.__setattr__(self, "shape", shape)
        object.__setattr__(self, "data", data)

    @classmethod
    def from_array(cls, arr) -> "TensorView":
        """Wrap an n-dimensional array; no copy when it is already float32 and contiguous."""
        arr = np.ascontiguousarray(arr, dtype=np.float32)
        return cls(shape=arr.shape, data=arr.reshape(-1))

    @property
    def ndim(self) -> int:
        return len(self.shape)

    @property
    def size(self) -> int:
        return int(self.data.size)

    def as_array(self) -> np.ndarray:
        """Return a read-only array view with this tensor's shape."""
        return self.data.reshape(self.shape)

    def rows(self, stride: int) -> np.ndarray:
        """
        View the tensor as (N, stride) rows.

        Accepts either a 2-D tensor whose last dimension equals stride or a
        3-D tensor with a leading batch of 1.

        Raises:
            ShapeMismatch: If the layout does not match the requested stride.
        """
        view = self.squeeze_batch() if self.ndim == 3 else self
        if view.ndim != 2 or view.shape[1] != stride:
            raise ShapeMismatch(
                f"Expected rows of stride {stride}, got tensor of shape {self.shape}"
            )
        return view.as_array()

    def squeeze_batch(self) -> "TensorView":
        """Drop a leading batch axis of size 1, if present."""
        if self.ndim >= 2 and self.shape[0] == 1:
            return TensorView(shape=self.shape[1:], data=self.data)
        return self

    def __len__(self) -> int:
        return self.shape[0] if self.shape else 0
