"""
ONNX Runtime inference provider.

Loads one session per head and binds each model's outputs to the named
keys of the provider contract through an explicit output-name map.
Sessions run in a worker thread so the event loop keeps ticking while a
frame is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from models.detection import Head
from models.errors import ProviderFailure
from models.tensor import TensorView
from .provider import HEAD_OUTPUTS, HeadOutputs, validate_outputs

DEFAULT_OUTPUT_NAMES: Dict[Head, Dict[str, str]] = {
    Head.OBJECT: {"scores": "logits", "boxes": "pred_boxes"},
    Head.POSE: {"poses": "output0"},
    Head.SEGMENT: {"detections": "output0", "protos": "output1"},
}


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return (1.0 / (1.0 + np.exp(-x.astype(np.float64)))).astype(np.float32)


@dataclass(frozen=True)
class OnnxProviderConfig:
    models: Mapping[Head, str]
    providers: Sequence[str] = ("CPUExecutionProvider",)
    output_names: Mapping[Head, Mapping[str, str]] = field(default_factory=dict)
    scores_are_logits: bool = True

    @classmethod
    def from_inference_config(cls, cfg) -> "OnnxProviderConfig":
        """Adapter: build from models.config.InferenceConfig."""
        return cls(
            models={Head.parse(k): v for k, v in cfg.models.items()},
            providers=tuple(cfg.providers),
            output_names={Head.parse(k): dict(v) for k, v in cfg.output_names.items()},
            scores_are_logits=cfg.scores_are_logits,
        )


class OnnxProvider:
    def __init__(self, cfg: OnnxProviderConfig):
        self.cfg = cfg
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is not installed. Install with `pip install onnxruntime` "
                "or `pip install .[onnx]`."
            ) from e

        self._sessions: Dict[Head, Any] = {}
        self._input_names: Dict[Head, str] = {}
        for head, path in cfg.models.items():
            try:
                session = ort.InferenceSession(str(path), providers=list(cfg.providers))
            except Exception as e:
                raise ProviderFailure(f"Failed to load model {path}: {e}", head) from e
            self._sessions[head] = session
            self._input_names[head] = session.get_inputs()[0].name
            logging.info(
                f"Loaded {head.value} model: {path} "
                f"(providers={session.get_providers()}, outputs={[o.name for o in session.get_outputs()]})"
            )

    @property
    def heads(self) -> frozenset:
        return frozenset(self._sessions)

    def output_names(self, head: Head) -> Mapping[str, str]:
        return self.cfg.output_names.get(head) or DEFAULT_OUTPUT_NAMES[head]

    async def infer(self, head: Head, image: np.ndarray) -> HeadOutputs:
        if head not in self._sessions:
            raise ProviderFailure("No model loaded for head", head)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._run, head, image)

    def _run(self, head: Head, image: np.ndarray) -> HeadOutputs:
        session = self._sessions[head]
        names = self.output_names(head)
        wanted = [names[key] for key in HEAD_OUTPUTS[head]]
        try:
            raw = session.run(wanted, {self._input_names[head]: image})
        except Exception as e:
            raise ProviderFailure(f"Inference failed: {e}", head) from e

        outputs: Dict[str, TensorView] = {}
        for key, value in zip(HEAD_OUTPUTS[head], raw):
            arr = np.asarray(value, dtype=np.float32)
            if arr.ndim >= 3 and arr.shape[0] == 1:
                arr = arr[0]
            if head is Head.OBJECT and key == "scores" and self.cfg.scores_are_logits:
                arr = _sigmoid(arr)
            outputs[key] = TensorView.from_array(arr)
        return validate_outputs(head, outputs)

    def close(self) -> None:
        self._sessions.clear()
        self._input_names.clear()


def create_provider(cfg, heads: Optional[Sequence[Head]] = None) -> OnnxProvider:
    """Factory: build an OnnxProvider for the configured (or requested) heads."""
    provider_cfg = OnnxProviderConfig.from_inference_config(cfg)
    if heads is not None:
        wanted = {Head.parse(h) for h in heads}
        provider_cfg = OnnxProviderConfig(
            models={h: p for h, p in provider_cfg.models.items() if h in wanted},
            providers=provider_cfg.providers,
            output_names=provider_cfg.output_names,
            scores_are_logits=provider_cfg.scores_are_logits,
        )
    return OnnxProvider(provider_cfg)
