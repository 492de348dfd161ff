"""CrossGPU Configuration APIs.

Public APIs for configuring CrossGPU:
- configure() - Set global configuration
- get_config() - Get current configuration
- load_config() - Load configuration from file
- CrossGPUConfig.from_env() - Read CROSSGPU_* environment variables
"""
from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Optional

import yaml

from crossgpu.enums import DeviceType

POWER_PREFERENCES = ("high-performance", "low-power")


def _parse_device(value: Any) -> Optional[DeviceType]:
    if value is None or isinstance(value, DeviceType):
        return value
    text = str(value).strip().lower()
    if not text or text == "auto":
        return None
    try:
        return DeviceType(text)
    except ValueError:
        raise ValueError(
            f"Unknown device {value!r}; expected one of "
            f"{[d.value for d in DeviceType]} or 'auto'"
        ) from None


def _check_power_preference(value: str) -> str:
    if value not in POWER_PREFERENCES:
        raise ValueError(
            f"Invalid power_preference {value!r}; expected one of {POWER_PREFERENCES}"
        )
    return value


def _parse_threads(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        threads = int(value)
    except ValueError:
        raise ValueError(
            f"CROSSGPU_CPU_THREADS must be an integer, got {value!r}"
        ) from None
    _check_threads(threads)
    return threads


def _check_threads(value: int) -> int:
    if value < 1:
        raise ValueError(f"cpu_num_threads must be >= 1, got {value}")
    return value


@dataclass
class CrossGPUConfig:
    """Global CrossGPU configuration.

    Attributes:
        preferred_device: Device tried first by auto-detection
            (None = platform default).
        power_preference: wgpu adapter hint, "high-performance" or "low-power".
        cpu_num_threads: Intra-op thread count for the CPU device
            (None = leave torch's default).
        default_layer_norm_eps: Epsilon for LayerNorm kernels without params.
    """
    preferred_device: Optional[DeviceType] = None
    power_preference: str = "high-performance"
    cpu_num_threads: Optional[int] = None
    default_layer_norm_eps: float = 1e-5

    @classmethod
    def from_env(cls) -> "CrossGPUConfig":
        """Create config from environment variables.

        Environment variables:
            CROSSGPU_DEVICE: Preferred device ("cpu", "vulkan", ..., "auto")
            CROSSGPU_POWER_PREFERENCE: "high-performance" or "low-power"
            CROSSGPU_CPU_THREADS: CPU intra-op thread count

        Returns:
            CrossGPUConfig with values from environment.

        Raises:
            ValueError: If a variable holds an unrecognized value.
        """
        preferred = _parse_device(os.environ.get("CROSSGPU_DEVICE"))

        power = os.environ.get("CROSSGPU_POWER_PREFERENCE")
        power = _check_power_preference(power) if power else "high-performance"

        threads = _parse_threads(os.environ.get("CROSSGPU_CPU_THREADS"))

        return cls(
            preferred_device=preferred,
            power_preference=power,
            cpu_num_threads=threads,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON compatibility."""
        return {
            "preferred_device": (
                self.preferred_device.value if self.preferred_device else None
            ),
            "power_preference": self.power_preference,
            "cpu_num_threads": self.cpu_num_threads,
            "default_layer_norm_eps": self.default_layer_norm_eps,
        }


@dataclass
class GlobalState:
    """Global state for CrossGPU."""
    config: CrossGPUConfig = field(default_factory=CrossGPUConfig.from_env)
    _lock: threading.Lock = field(default_factory=threading.Lock)


# Module-level global state
_global_state: Optional[GlobalState] = None
_state_lock = threading.Lock()


def _get_global_state() -> GlobalState:
    """Get or create global state."""
    global _global_state
    if _global_state is None:
        with _state_lock:
            if _global_state is None:
                _global_state = GlobalState()
    return _global_state


def configure(
    preferred_device: Optional[DeviceType | str] = None,
    power_preference: Optional[str] = None,
    cpu_num_threads: Optional[int] = None,
    default_layer_norm_eps: Optional[float] = None,
    reset: bool = False,
) -> None:
    """Configure CrossGPU global settings.

    Settings persist for the lifetime of the process unless reset.
    Devices read the configuration when they are constructed.

    Args:
        preferred_device: Device auto-detection tries first.
        power_preference: "high-performance" or "low-power".
        cpu_num_threads: CPU intra-op thread count.
        default_layer_norm_eps: Epsilon for LayerNorm without params.
        reset: If True, reset all settings to defaults first.

    Raises:
        ValueError: If a value is out of range.

    Example:
        >>> import crossgpu
        >>> crossgpu.configure(preferred_device="cpu")
        >>> crossgpu.configure(reset=True)
    """
    device = _parse_device(preferred_device)
    if power_preference is not None:
        _check_power_preference(power_preference)
    if cpu_num_threads is not None:
        _check_threads(cpu_num_threads)
    if default_layer_norm_eps is not None and default_layer_norm_eps <= 0:
        raise ValueError(
            f"default_layer_norm_eps must be > 0, got {default_layer_norm_eps}"
        )

    state = _get_global_state()

    with state._lock:
        if reset:
            state.config = CrossGPUConfig()

        if device is not None:
            state.config.preferred_device = device
        if power_preference is not None:
            state.config.power_preference = power_preference
        if cpu_num_threads is not None:
            state.config.cpu_num_threads = cpu_num_threads
        if default_layer_norm_eps is not None:
            state.config.default_layer_norm_eps = default_layer_norm_eps


def get_config() -> CrossGPUConfig:
    """Get current CrossGPU configuration.

    Returns:
        Current configuration object (copy for safety).
    """
    state = _get_global_state()
    with state._lock:
        return replace(state.config)


def load_config(path: str) -> None:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML configuration file.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config file is invalid.

    YAML format::

        preferred_device: vulkan
        power_preference: low-power
        cpu_num_threads: 4
        default_layer_norm_eps: 1.0e-6
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, 'r') as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Invalid config file format: {path}")

    configure(
        preferred_device=data.get('preferred_device'),
        power_preference=data.get('power_preference'),
        cpu_num_threads=data.get('cpu_num_threads'),
        default_layer_norm_eps=data.get('default_layer_norm_eps'),
    )
