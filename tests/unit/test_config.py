"""Tests for CrossGPU configuration APIs."""
from __future__ import annotations

import pytest


class TestConfigure:
    """Tests for configure() and get_config()."""

    def test_defaults(self) -> None:
        """A reset configuration has the documented defaults."""
        from crossgpu.config import get_config

        config = get_config()
        assert config.preferred_device is None
        assert config.power_preference == "high-performance"
        assert config.cpu_num_threads is None
        assert config.default_layer_norm_eps == 1e-5

    def test_configure_values(self) -> None:
        """configure updates only the given fields."""
        from crossgpu.config import configure, get_config
        from crossgpu.enums import DeviceType

        configure(preferred_device="metal", cpu_num_threads=2)
        configure(power_preference="low-power")
        config = get_config()
        assert config.preferred_device is DeviceType.METAL
        assert config.power_preference == "low-power"
        assert config.cpu_num_threads == 2

    def test_auto_means_platform_default(self) -> None:
        """'auto' leaves the preferred device unset."""
        from crossgpu.config import configure, get_config

        configure(preferred_device="auto")
        assert get_config().preferred_device is None

    def test_reset(self) -> None:
        """reset=True restores defaults before applying changes."""
        from crossgpu.config import configure, get_config

        configure(cpu_num_threads=4, power_preference="low-power")
        configure(reset=True, default_layer_norm_eps=1e-6)
        config = get_config()
        assert config.cpu_num_threads is None
        assert config.power_preference == "high-performance"
        assert config.default_layer_norm_eps == 1e-6

    def test_get_config_returns_copy(self) -> None:
        """Mutating the returned config does not change global state."""
        from crossgpu.config import get_config

        get_config().cpu_num_threads = 99
        assert get_config().cpu_num_threads is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"preferred_device": "opengl"},
            {"power_preference": "turbo"},
            {"cpu_num_threads": 0},
            {"default_layer_norm_eps": 0.0},
        ],
    )
    def test_invalid_values(self, kwargs: dict) -> None:
        """Out-of-range values raise ValueError and change nothing."""
        from crossgpu.config import configure, get_config

        before = get_config()
        with pytest.raises(ValueError):
            configure(**kwargs)
        assert get_config() == before

    def test_to_dict(self) -> None:
        """to_dict is JSON friendly."""
        from crossgpu.config import configure, get_config

        configure(preferred_device="vulkan")
        assert get_config().to_dict() == {
            "preferred_device": "vulkan",
            "power_preference": "high-performance",
            "cpu_num_threads": None,
            "default_layer_norm_eps": 1e-5,
        }


class TestFromEnv:
    """Tests for CrossGPUConfig.from_env()."""

    def test_reads_environment(self, monkeypatch) -> None:
        """CROSSGPU_* variables populate the config."""
        from crossgpu.config import CrossGPUConfig
        from crossgpu.enums import DeviceType

        monkeypatch.setenv("CROSSGPU_DEVICE", "DX12")
        monkeypatch.setenv("CROSSGPU_POWER_PREFERENCE", "low-power")
        monkeypatch.setenv("CROSSGPU_CPU_THREADS", "6")
        config = CrossGPUConfig.from_env()
        assert config.preferred_device is DeviceType.DX12
        assert config.power_preference == "low-power"
        assert config.cpu_num_threads == 6

    def test_empty_environment(self) -> None:
        """Unset variables give defaults."""
        import os
        from unittest.mock import patch

        from crossgpu.config import CrossGPUConfig

        with patch.dict(os.environ, {}, clear=True):
            assert CrossGPUConfig.from_env() == CrossGPUConfig()

    def test_invalid_device(self, monkeypatch) -> None:
        """Unknown device names are rejected."""
        from crossgpu.config import CrossGPUConfig

        monkeypatch.setenv("CROSSGPU_DEVICE", "cuda")
        with pytest.raises(ValueError, match="Unknown device"):
            CrossGPUConfig.from_env()

    @pytest.mark.parametrize("value", ["0", "-2", "many", "1.5"])
    def test_invalid_thread_count(self, value: str) -> None:
        """CROSSGPU_CPU_THREADS must be a positive integer."""
        import os
        from unittest.mock import patch

        from crossgpu.config import CrossGPUConfig

        with patch.dict(os.environ, {"CROSSGPU_CPU_THREADS": value}):
            with pytest.raises(ValueError, match="CROSSGPU_CPU_THREADS|cpu_num_threads"):
                CrossGPUConfig.from_env()

    def test_blank_thread_count(self) -> None:
        """A blank CROSSGPU_CPU_THREADS leaves torch's default."""
        import os
        from unittest.mock import patch

        from crossgpu.config import CrossGPUConfig

        with patch.dict(os.environ, {"CROSSGPU_CPU_THREADS": "  "}):
            assert CrossGPUConfig.from_env().cpu_num_threads is None


class TestLoadConfig:
    """Tests for load_config()."""

    def test_load_yaml(self, tmp_path) -> None:
        """YAML keys map onto configure()."""
        from crossgpu.config import get_config, load_config
        from crossgpu.enums import DeviceType

        path = tmp_path / "crossgpu.yaml"
        path.write_text(
            "preferred_device: webgpu\n"
            "power_preference: low-power\n"
            "cpu_num_threads: 3\n"
            "default_layer_norm_eps: 1.0e-6\n"
        )
        load_config(str(path))
        config = get_config()
        assert config.preferred_device is DeviceType.WEBGPU
        assert config.power_preference == "low-power"
        assert config.cpu_num_threads == 3
        assert config.default_layer_norm_eps == 1e-6

    def test_partial_yaml(self, tmp_path) -> None:
        """Keys missing from the file keep their current value."""
        from crossgpu.config import configure, get_config, load_config

        configure(cpu_num_threads=5)
        path = tmp_path / "crossgpu.yaml"
        path.write_text("power_preference: low-power\n")
        load_config(str(path))
        assert get_config().cpu_num_threads == 5

    def test_missing_file(self, tmp_path) -> None:
        """A missing file raises FileNotFoundError."""
        from crossgpu.config import load_config

        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_not_a_mapping(self, tmp_path) -> None:
        """A YAML list is not a valid config."""
        from crossgpu.config import load_config

        path = tmp_path / "bad.yaml"
        path.write_text("- cpu\n- vulkan\n")
        with pytest.raises(ValueError, match="Invalid config file format"):
            load_config(str(path))
