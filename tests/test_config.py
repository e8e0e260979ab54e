"""
Tests for configuration loading, validation and CLI overrides.
"""

import argparse

import pytest

from main import apply_cli_overrides, load_config, validate_config


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_passes(self, valid_config):
        """A complete valid config passes validation."""
        is_valid, error = validate_config(valid_config)

        assert is_valid is True
        assert error is None

    @pytest.mark.parametrize("section", ["camera", "inference", "log_path", "log_level"])
    def test_missing_required_section(self, valid_config, section):
        del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert section in error

    def test_optional_sections_may_be_absent(self, valid_config):
        for section in ("pose", "segment", "scheduler"):
            del valid_config[section]

        assert validate_config(valid_config) == (True, None)

    def test_negative_device_id(self, valid_config):
        valid_config["camera"]["device_id"] = -1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "non-negative" in error

    def test_string_device_id_valid(self, valid_config):
        """Stream URLs and file paths are accepted as device_id."""
        valid_config["camera"]["device_id"] = "rtsp://camera.local/stream"

        assert validate_config(valid_config)[0] is True

    def test_invalid_device_id_type(self, valid_config):
        valid_config["camera"]["device_id"] = 1.5

        assert validate_config(valid_config)[0] is False

    @pytest.mark.parametrize("resolution", [[640], [640, 0], "640x480", [640.0, 480]])
    def test_invalid_resolution(self, valid_config, resolution):
        valid_config["camera"]["resolution"] = resolution

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "resolution" in error

    def test_invalid_fps(self, valid_config):
        valid_config["camera"]["fps"] = 0

        assert validate_config(valid_config)[0] is False

    @pytest.mark.parametrize("threshold", [-0.1, 1.01, "high"])
    def test_threshold_out_of_range(self, valid_config, threshold):
        valid_config["inference"]["threshold"] = threshold

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "threshold" in error

    @pytest.mark.parametrize("threshold", [0, 0.0, 1, 1.0])
    def test_threshold_bounds_inclusive(self, valid_config, threshold):
        valid_config["inference"]["threshold"] = threshold

        assert validate_config(valid_config)[0] is True

    def test_unknown_head(self, valid_config):
        valid_config["inference"]["heads"] = ["object", "depth"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "depth" in error

    def test_empty_heads(self, valid_config):
        valid_config["inference"]["heads"] = []

        assert validate_config(valid_config)[0] is False

    def test_model_path_must_be_string(self, valid_config):
        valid_config["inference"]["models"]["pose"] = None

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "inference.models.pose" in error

    def test_input_size_positive(self, valid_config):
        valid_config["inference"]["input_size"] = 0

        assert validate_config(valid_config)[0] is False

    def test_visibility_threshold_range(self, valid_config):
        valid_config["pose"]["visibility_threshold"] = 2

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "visibility_threshold" in error

    def test_mask_threshold_null_or_unit(self, valid_config):
        valid_config["segment"]["mask_threshold"] = 0.5
        assert validate_config(valid_config)[0] is True

        valid_config["segment"]["mask_threshold"] = 1.5
        assert validate_config(valid_config)[0] is False

    @pytest.mark.parametrize("key", ["tick_interval_ms", "fps_interval_ms", "drain_timeout_s"])
    def test_scheduler_periods_positive(self, valid_config, key):
        valid_config["scheduler"][key] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert key in error

    def test_latency_window_at_least_one(self, valid_config):
        valid_config["scheduler"]["latency_window"] = 0

        assert validate_config(valid_config)[0] is False

    def test_invalid_log_level(self, valid_config):
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_yaml(self, temp_config_dir):
        """Config loads from default.yaml when only it exists."""
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["camera"]["device_id"] == 0
        assert config["inference"]["heads"] == ["object"]
        assert config["segment"]["mask_threshold"] is None

    def test_local_overrides_merge(self, temp_config_dir):
        """Local config.yaml overrides default.yaml, keeping unrelated keys."""
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("""
inference:
  heads: [object, pose]
  models:
    pose: "models/pose.onnx"
""")

        config = load_config(str(config_yaml))

        assert config["inference"]["heads"] == ["object", "pose"]
        assert config["inference"]["models"] == {
            "object": "models/object.onnx",
            "pose": "models/pose.onnx",
        }
        assert config["inference"]["threshold"] == 0.5

    def test_explicit_path_applied_last(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("inference:\n  threshold: 0.4\n")
        explicit = temp_config_dir / "bench.yaml"
        explicit.write_text("inference:\n  threshold: 0.7\nscheduler:\n  latency_window: 30\n")

        config = load_config(str(explicit))

        assert config["inference"]["threshold"] == 0.7
        assert config["scheduler"]["latency_window"] == 30
        assert config["scheduler"]["tick_interval_ms"] == 16.7

    def test_loaded_defaults_validate(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert validate_config(config) == (True, None)


class TestCliOverrides:
    def _args(self, **kwargs):
        defaults = {"heads": None, "threshold": None, "source": None}
        defaults.update(kwargs)
        return argparse.Namespace(**defaults)

    def test_heads_and_threshold(self, valid_config):
        config = apply_cli_overrides(valid_config, self._args(heads="pose, segment", threshold=0.35))

        assert config["inference"]["heads"] == ["pose", "segment"]
        assert config["inference"]["threshold"] == 0.35

    def test_numeric_source_becomes_index(self, valid_config):
        assert apply_cli_overrides(valid_config, self._args(source="2"))["camera"]["device_id"] == 2
        assert apply_cli_overrides(valid_config, self._args(source="clip.mp4"))["camera"]["device_id"] == "clip.mp4"
