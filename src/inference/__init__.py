"""
Inference providers: the named-output contract, preprocessing and the ONNX
Runtime backend.
"""

from .provider import HEAD_OUTPUTS, HeadOutputs, InferenceProvider, StaticProvider, validate_outputs
from .preprocess import preprocess

__all__ = [
    "HEAD_OUTPUTS",
    "HeadOutputs",
    "InferenceProvider",
    "StaticProvider",
    "validate_outputs",
    "preprocess",
]
