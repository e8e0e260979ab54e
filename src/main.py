"""
Multi-head vision runtime: live object, pose and segmentation overlays.

Opens a camera, runs every enabled head on each scheduled frame and draws
the merged detections on a preview window.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show the annotated preview window
    --heads: Comma-separated heads to enable (object,pose,segment)
    --threshold: Detection confidence threshold override
    --source: Camera index, stream URL or video file override
"""

import os
import sys
import argparse
import asyncio
import logging
import yaml
import cv2
from typing import Dict, Any, Tuple, Optional

from models.config import Config
from models.detection import Head
from models.errors import VisionRuntimeError
from inference.onnx_provider import create_provider
from observation.opencv_source import OpenCVSource, OpenCVSourceConfig
from ops.logging import setup_logging
from pipeline.engine import create_pipeline_from_config
from render.overlay import OverlayRenderer
from runtime.session import CaptureSession

WINDOW_NAME = "Vision Runtime"
VALID_HEADS = tuple(h.value for h in Head)
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `default.yaml` next to the given path (checked in)
    - `config.yaml` next to it (local overrides)
    - the explicit `--config` path, when it is a different file
    """
    try:
        config_dir = os.path.dirname(config_path)
        local_path = os.path.join(config_dir, "config.yaml")
        merged = _deep_merge(_read_yaml(os.path.join(config_dir, "default.yaml")), _read_yaml(local_path))
        if os.path.abspath(config_path) != os.path.abspath(local_path):
            merged = _deep_merge(merged, _read_yaml(config_path))
        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_unit_interval(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 0.0 <= value <= 1.0


def _is_positive(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Merged configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'inference', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    device_id = camera['device_id']
    if isinstance(device_id, bool) or not isinstance(device_id, (int, str)):
        return False, "camera.device_id must be an integer (index) or string (URL/path)"
    if isinstance(device_id, int) and device_id < 0:
        return False, "camera.device_id integer must be non-negative"

    resolution = camera.get('resolution')
    if not isinstance(resolution, list) or len(resolution) != 2:
        return False, "camera.resolution must be a list of [width, height]"
    if not all(isinstance(x, int) and not isinstance(x, bool) and x > 0 for x in resolution):
        return False, "camera.resolution values must be positive integers"

    fps = camera.get('fps')
    if not isinstance(fps, int) or isinstance(fps, bool) or fps <= 0:
        return False, "camera.fps must be a positive integer"

    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"

    # Inference
    inference = config.get('inference') or {}
    if 'threshold' in inference and not _is_unit_interval(inference['threshold']):
        return False, "inference.threshold must be between 0 and 1"

    heads = inference.get('heads', ['object'])
    if not isinstance(heads, list) or not heads:
        return False, "inference.heads must be a non-empty list"
    unknown = [h for h in heads if h not in VALID_HEADS]
    if unknown:
        return False, f"inference.heads contains unknown heads {unknown}; valid: {', '.join(VALID_HEADS)}"

    input_size = inference.get('input_size', 640)
    if not isinstance(input_size, int) or isinstance(input_size, bool) or input_size <= 0:
        return False, "inference.input_size must be a positive integer"

    models = inference.get('models', {}) or {}
    if not isinstance(models, dict):
        return False, "inference.models must be a mapping of head to model path"
    for head, path in models.items():
        if head not in VALID_HEADS:
            return False, f"inference.models has unknown head: {head}"
        if not isinstance(path, str) or not path:
            return False, f"inference.models.{head} must be a non-empty string"

    # Pose / segment
    pose = config.get('pose') or {}
    if 'visibility_threshold' in pose and not _is_unit_interval(pose['visibility_threshold']):
        return False, "pose.visibility_threshold must be between 0 and 1"

    segment = config.get('segment') or {}
    mask_threshold = segment.get('mask_threshold')
    if mask_threshold is not None and not _is_unit_interval(mask_threshold):
        return False, "segment.mask_threshold must be null or between 0 and 1"

    # Scheduler
    scheduler = config.get('scheduler') or {}
    for key in ('tick_interval_ms', 'fps_interval_ms', 'drain_timeout_s'):
        if key in scheduler and not _is_positive(scheduler[key]):
            return False, f"scheduler.{key} must be a positive number"
    if 'latency_window' in scheduler:
        window = scheduler['latency_window']
        if not isinstance(window, int) or isinstance(window, bool) or window < 1:
            return False, "scheduler.latency_window must be an integer >= 1"

    # Logging
    if not isinstance(config['log_path'], str) or not config['log_path']:
        return False, "log_path must be a non-empty string"
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def apply_cli_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Fold --heads/--threshold/--source into the merged config before validation."""
    if args.heads:
        config.setdefault('inference', {})['heads'] = [h.strip() for h in args.heads.split(',') if h.strip()]
    if args.threshold is not None:
        config.setdefault('inference', {})['threshold'] = args.threshold
    if args.source is not None:
        source = args.source
        config.setdefault('camera', {})['device_id'] = int(source) if source.isdigit() else source
    return config


async def run(cfg: Config, display: bool) -> None:
    """Run the capture session until 'q' is pressed or the task is cancelled."""
    provider = create_provider(cfg.inference, heads=cfg.inference.heads)
    pipeline = create_pipeline_from_config(cfg, provider)
    source = OpenCVSource(OpenCVSourceConfig.from_camera_config(cfg.camera))
    renderer = OverlayRenderer(visibility_threshold=cfg.pose.visibility_threshold)
    session = CaptureSession(source, pipeline, cfg.scheduler)

    session.start()
    logging.info(f"Running heads: {sorted(h.value for h in pipeline.enabled_heads)}")
    last_shown = -1
    try:
        while True:
            await asyncio.sleep(cfg.scheduler.tick_interval_ms / 1000.0)
            if not display:
                continue
            result, frame_data = session.latest_result, session.latest_frame
            if result is not None and frame_data is not None and result.frame_index != last_shown:
                last_shown = result.frame_index
                annotated = renderer.draw(frame_data.frame.copy(), result.detections)
                renderer.draw_stats(annotated, session.stats())
                cv2.imshow(WINDOW_NAME, annotated)
            key = cv2.waitKey(1) & 0xFF
            if key == ord('q'):
                break
    finally:
        await session.close()
        logging.info(f"Session closed: {session.stats()}")


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Multi-head vision runtime')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Enable visual display')
    parser.add_argument('--heads', type=str, default=None,
                        help='Comma-separated heads to enable: object,pose,segment')
    parser.add_argument('--threshold', type=float, default=None,
                        help='Detection confidence threshold (0-1)')
    parser.add_argument('--source', type=str, default=None,
                        help='Camera index, stream URL or video file')
    args = parser.parse_args()

    config = apply_cli_overrides(load_config(args.config), args)

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    logging.info("Starting vision runtime")

    cfg = Config.from_dict(config)
    try:
        asyncio.run(run(cfg, args.display))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    except VisionRuntimeError as e:
        logging.error(f"Vision runtime failed: {e}")
        sys.exit(1)
    except ImportError as e:
        logging.error(f"Inference backend unavailable: {e}")
        sys.exit(1)
    finally:
        if args.display:
            cv2.destroyAllWindows()
        logging.info("Vision runtime stopped")


if __name__ == "__main__":
    main()
