"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [640, 640])
    fps: int = 30
    buffer_size: int = 1
    max_retries: int = 3
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [640, 640]),
            fps=d.get("fps", 30),
            buffer_size=d.get("buffer_size", 1),
            max_retries=d.get("max_retries", 3),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0) or 0,
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "buffer_size": self.buffer_size,
            "max_retries": self.max_retries,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class InferenceConfig:
    """
    Inference provider and head selection.

    Attributes:
        heads: Heads enabled at startup ("object", "pose", "segment").
        threshold: Detection-level confidence threshold shared by all heads.
        input_size: Square model input size in pixels.
        models: Model file per head.
        providers: ONNX Runtime execution providers, in preference order.
        output_names: Per head, contract key -> model output name.
        scores_are_logits: Apply a sigmoid to object scores before decoding.
        max_detections: Candidate slots scanned per head.
        class_name_overrides: Model-specific id -> label map.
    """
    heads: List[str] = field(default_factory=lambda: ["object"])
    threshold: float = 0.5
    input_size: int = 640
    models: Dict[str, str] = field(default_factory=dict)
    providers: List[str] = field(default_factory=lambda: ["CPUExecutionProvider"])
    output_names: Dict[str, Dict[str, str]] = field(default_factory=dict)
    scores_are_logits: bool = True
    max_detections: int = 300
    class_name_overrides: Optional[Dict[int, str]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InferenceConfig":
        overrides = d.get("class_name_overrides")
        if overrides is not None:
            overrides = {int(k): str(v) for k, v in overrides.items()}
        return cls(
            heads=list(d.get("heads", ["object"])),
            threshold=float(d.get("threshold", 0.5)),
            input_size=int(d.get("input_size", 640)),
            models=dict(d.get("models", {}) or {}),
            providers=list(d.get("providers", ["CPUExecutionProvider"])),
            output_names={k: dict(v) for k, v in (d.get("output_names", {}) or {}).items()},
            scores_are_logits=bool(d.get("scores_are_logits", True)),
            max_detections=int(d.get("max_detections", 300)),
            class_name_overrides=overrides,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "heads": self.heads,
            "threshold": self.threshold,
            "input_size": self.input_size,
            "models": self.models,
            "providers": self.providers,
            "output_names": self.output_names,
            "scores_are_logits": self.scores_are_logits,
            "max_detections": self.max_detections,
        }
        if self.class_name_overrides is not None:
            d["class_name_overrides"] = self.class_name_overrides
        return d


@dataclass
class PoseConfig:
    """Pose rendering configuration."""
    visibility_threshold: float = 0.3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PoseConfig":
        return cls(visibility_threshold=float(d.get("visibility_threshold", 0.3)))

    def to_dict(self) -> Dict[str, Any]:
        return {"visibility_threshold": self.visibility_threshold}


@dataclass
class SegmentConfig:
    """Segmentation mask configuration. mask_threshold None keeps continuous opacity."""
    mask_threshold: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SegmentConfig":
        thr = d.get("mask_threshold")
        return cls(mask_threshold=float(thr) if thr is not None else None)

    def to_dict(self) -> Dict[str, Any]:
        return {"mask_threshold": self.mask_threshold}


@dataclass
class SchedulerConfig:
    """
    Frame scheduler pacing.

    Attributes:
        tick_interval_ms: Display refresh period between scheduling ticks.
        fps_interval_ms: Period over which completed passes are counted as FPS.
        latency_window: Number of recent pass durations averaged.
        drain_timeout_s: How long a camera/model swap waits for processing to clear.
        drain_poll_ms: Poll period while draining.
    """
    tick_interval_ms: float = 1000.0 / 60.0
    fps_interval_ms: float = 1000.0
    latency_window: int = 10
    drain_timeout_s: float = 5.0
    drain_poll_ms: float = 50.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SchedulerConfig":
        return cls(
            tick_interval_ms=float(d.get("tick_interval_ms", 1000.0 / 60.0)),
            fps_interval_ms=float(d.get("fps_interval_ms", 1000.0)),
            latency_window=int(d.get("latency_window", 10)),
            drain_timeout_s=float(d.get("drain_timeout_s", 5.0)),
            drain_poll_ms=float(d.get("drain_poll_ms", 50.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tick_interval_ms": self.tick_interval_ms,
            "fps_interval_ms": self.fps_interval_ms,
            "latency_window": self.latency_window,
            "drain_timeout_s": self.drain_timeout_s,
            "drain_poll_ms": self.drain_poll_ms,
        }


@dataclass
class Config:
    """Complete application configuration."""
    camera: CameraConfig = field(default_factory=CameraConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    pose: PoseConfig = field(default_factory=PoseConfig)
    segment: SegmentConfig = field(default_factory=SegmentConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    log_path: str = "logs/vision.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create from the merged YAML config dictionary."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            inference=InferenceConfig.from_dict(d.get("inference", {}) or {}),
            pose=PoseConfig.from_dict(d.get("pose", {}) or {}),
            segment=SegmentConfig.from_dict(d.get("segment", {}) or {}),
            scheduler=SchedulerConfig.from_dict(d.get("scheduler", {}) or {}),
            log_path=d.get("log_path", "logs/vision.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging)."""
        return {
            "camera": self.camera.to_dict(),
            "inference": self.inference.to_dict(),
            "pose": self.pose.to_dict(),
            "segment": self.segment.to_dict(),
            "scheduler": self.scheduler.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
