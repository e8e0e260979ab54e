"""
Inference provider interface.

A provider runs one head on a preprocessed frame and returns its outputs as
a mapping with fixed, documented keys. Outputs are never extracted by
position or dict order. A failed call raises; there are no partial tensors.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Protocol, Tuple

import numpy as np

from models.detection import Head
from models.errors import ProviderFailure
from models.tensor import TensorView

HEAD_OUTPUTS: Dict[Head, Tuple[str, ...]] = {
    Head.OBJECT: ("scores", "boxes"),        # [N, C] probabilities, [N, 4] normalized cx, cy, w, h
    Head.POSE: ("poses",),                   # [N, 57]
    Head.SEGMENT: ("detections", "protos"),  # [N, 38], [32, Hp, Wp]
}

HeadOutputs = Mapping[str, TensorView]


def validate_outputs(head: Head, outputs: Optional[HeadOutputs]) -> HeadOutputs:
    """
    Check a provider result carries every key its head needs.

    Raises:
        ProviderFailure: If the result is empty or a key is missing.
    """
    if not outputs:
        raise ProviderFailure("Provider returned no outputs", head)
    missing = [key for key in HEAD_OUTPUTS[head] if key not in outputs]
    if missing:
        raise ProviderFailure(f"Provider result is missing outputs: {', '.join(missing)}", head)
    return outputs


class InferenceProvider(Protocol):
    @property
    def heads(self) -> frozenset:
        ...

    async def infer(self, head: Head, image: np.ndarray) -> HeadOutputs:
        ...

    def close(self) -> None:
        ...


class StaticProvider:
    """
    Provider that replays fixed tensors per head.

    Useful for dry runs without a model and for exercising the pipeline.
    A head mapped to an exception instance raises it on every call.
    """

    def __init__(self, outputs: Mapping[Head, object]):
        self._outputs = {Head.parse(k): v for k, v in outputs.items()}
        self.calls: Dict[Head, int] = {h: 0 for h in self._outputs}
        self.closed = False

    @property
    def heads(self) -> frozenset:
        return frozenset(self._outputs)

    async def infer(self, head: Head, image: np.ndarray) -> HeadOutputs:
        if head not in self._outputs:
            raise ProviderFailure("No model loaded for head", head)
        self.calls[head] += 1
        result = self._outputs[head]
        if isinstance(result, BaseException):
            raise result
        return {
            key: value if isinstance(value, TensorView) else TensorView.from_array(value)
            for key, value in result.items()
        }

    def close(self) -> None:
        self.closed = True
