"""
CrossGPU Device Selection

Chooses the device a process should use: the preferred variant if it can
be constructed and reports itself available, otherwise the CPU device.
The fallback is a single step. Intermediate variants are never tried and
a failed preferred device is never retried.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from crossgpu.backends.base import GpuDevice
from crossgpu.backends.cpu import CpuDevice
from crossgpu.config import get_config
from crossgpu.enums import DeviceType
from crossgpu.exceptions import GpuError
from crossgpu.registry.device_registry import DeviceRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceSelection:
    """Outcome of device auto-detection.

    Attributes:
        device: The device to use.
        preferred: Variant that was tried first.
        selected: Variant of the returned device.
        fell_back: Whether the CPU fallback was taken.
        reason: Why the preferred variant was rejected, if it was.
        selection_latency_ns: Time spent selecting in nanoseconds.
    """

    device: GpuDevice
    preferred: DeviceType
    selected: DeviceType
    fell_back: bool
    reason: Optional[str] = None
    selection_latency_ns: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "device": self.device.device_name(),
            "preferred": self.preferred.value,
            "selected": self.selected.value,
            "fell_back": self.fell_back,
            "reason": self.reason,
            "selection_latency_ns": self.selection_latency_ns,
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)


def create_device(
    device_type: DeviceType,
    registry: Optional[DeviceRegistry] = None,
) -> GpuDevice:
    """Construct a specific device variant.

    Args:
        device_type: Variant to construct.
        registry: Registry to use (None = default registry).

    Returns:
        Constructed device.

    Raises:
        GpuError: If the variant is unavailable on this platform or its
            constructor fails.
    """
    registry = registry if registry is not None else default_registry()
    return registry.create(device_type)


def select_device(
    registry: Optional[DeviceRegistry] = None,
    preferred: Optional[DeviceType] = None,
) -> DeviceSelection:
    """Pick a device, falling back to the CPU device.

    The preferred variant is the explicit argument, else the configured
    preferred_device, else DeviceType.default_for_platform(). If it cannot
    be constructed or reports is_available() False, the CPU device is
    constructed exactly once.

    Args:
        registry: Registry to use (None = default registry).
        preferred: Variant to try first.

    Returns:
        DeviceSelection describing the outcome. Never raises for an
        unavailable accelerator.
    """
    start = time.perf_counter_ns()
    if preferred is None:
        preferred = get_config().preferred_device or DeviceType.default_for_platform()
    preferred = DeviceType(preferred)

    reason: Optional[str] = None
    try:
        device = create_device(preferred, registry)
    except GpuError as e:
        reason = e.message
    else:
        if device.is_available():
            logger.info("Selected %s device: %s", preferred.value, device.device_name())
            return DeviceSelection(
                device=device,
                preferred=preferred,
                selected=preferred,
                fell_back=False,
                selection_latency_ns=time.perf_counter_ns() - start,
            )
        reason = f"{device.device_name()} reported unavailable"
        try:
            device.close()
        except GpuError as e:
            logger.debug("Ignoring close failure of %s: %s", device.device_name(), e)

    logger.warning("%s device unavailable, falling back to CPU: %s", preferred.value, reason)
    fallback = CpuDevice()
    return DeviceSelection(
        device=fallback,
        preferred=preferred,
        selected=DeviceType.CPU,
        fell_back=True,
        reason=reason,
        selection_latency_ns=time.perf_counter_ns() - start,
    )


def auto_detect_device(
    registry: Optional[DeviceRegistry] = None,
    preferred: Optional[DeviceType] = None,
) -> GpuDevice:
    """Return the best available device (see select_device)."""
    return select_device(registry=registry, preferred=preferred).device
