"""
CrossGPU Device Registry

Maps each DeviceType to a zero-argument constructor. The default registry
is populated once, on first use, with the variants the running platform
can host; callers may register their own factories (for example to
inject a custom device or to disable a backend).

Thread-safe for concurrent access.
"""
from __future__ import annotations

import logging
import sys
import threading
from threading import RLock
from typing import TYPE_CHECKING, Callable, Optional

from crossgpu.enums import DeviceType
from crossgpu.exceptions import CrossGPUError, GpuError

if TYPE_CHECKING:
    from crossgpu.backends.base import GpuDevice

logger = logging.getLogger(__name__)

DeviceFactory = Callable[[], "GpuDevice"]


class DeviceRegistry:
    """Registry of device constructors keyed by DeviceType.

    Example:
        >>> registry = DeviceRegistry()
        >>> registry.register(DeviceType.CPU, CpuDevice)
        >>> registry.create(DeviceType.CPU).device_name()
        'CPU'
    """

    __slots__ = ("_lock", "_factories")

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._lock = RLock()
        self._factories: dict[DeviceType, DeviceFactory] = {}

    def register(
        self,
        device_type: DeviceType,
        factory: DeviceFactory,
        *,
        replace: bool = False,
    ) -> None:
        """Register a device constructor.

        Args:
            device_type: Device variant.
            factory: Zero-argument callable returning a GpuDevice.
            replace: Overwrite an existing registration.

        Raises:
            ValueError: If device_type is already registered and not replace.
        """
        device_type = DeviceType(device_type)
        with self._lock:
            if device_type in self._factories and not replace:
                raise ValueError(f"Device type {device_type.value} already registered")
            self._factories[device_type] = factory

    def unregister(self, device_type: DeviceType) -> bool:
        """Remove a device constructor.

        Args:
            device_type: Device variant.

        Returns:
            True if a registration was removed.
        """
        with self._lock:
            return self._factories.pop(DeviceType(device_type), None) is not None

    def get_factory(self, device_type: DeviceType) -> Optional[DeviceFactory]:
        """Get the constructor for a device type, or None."""
        with self._lock:
            return self._factories.get(DeviceType(device_type))

    def is_registered(self, device_type: DeviceType) -> bool:
        """Check whether a device type has a constructor."""
        with self._lock:
            return DeviceType(device_type) in self._factories

    def registered_types(self) -> list[DeviceType]:
        """Get registered device types in DeviceType declaration order."""
        with self._lock:
            return [dt for dt in DeviceType if dt in self._factories]

    def create(self, device_type: DeviceType) -> "GpuDevice":
        """Construct a device.

        Args:
            device_type: Device variant.

        Returns:
            Newly constructed device.

        Raises:
            GpuError: If the variant is not registered or its constructor
                fails. Non-CrossGPU failures (missing native libraries,
                driver errors) are chained as __cause__.
        """
        device_type = DeviceType(device_type)
        factory = self.get_factory(device_type)
        if factory is None:
            raise GpuError(f"{device_type.value} backend not available on this platform")

        try:
            device = factory()
        except GpuError:
            raise
        except CrossGPUError as e:
            raise GpuError(f"Failed to create {device_type.value} device: {e.message}") from e
        except Exception as e:
            raise GpuError(f"Failed to create {device_type.value} device: {e}") from e

        logger.info("Created %s device: %s", device_type.value, device.device_name())
        return device

    def clear(self) -> None:
        """Remove all registrations."""
        with self._lock:
            self._factories.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._factories)

    def __contains__(self, device_type: object) -> bool:
        try:
            return self.is_registered(device_type)  # type: ignore[arg-type]
        except ValueError:
            return False


# ----------------------------------------------------------------------
# Built-in factories. wgpu is imported lazily so hosts without it can
# still construct the CPU device.
# ----------------------------------------------------------------------

def _cpu_factory() -> "GpuDevice":
    from crossgpu.backends.cpu import CpuDevice

    return CpuDevice()


def _wgpu_factory(device_type: DeviceType) -> DeviceFactory:
    def factory() -> "GpuDevice":
        from crossgpu.backends.wgpu import WGPU_DEVICES

        return WGPU_DEVICES[device_type]()

    factory.__name__ = f"{device_type.value}_factory"
    return factory


# sys.platform prefix -> accelerator variants the platform can host
_PLATFORM_DEVICES: tuple[tuple[str, tuple[DeviceType, ...]], ...] = (
    ("emscripten", (DeviceType.WEBGPU,)),
    ("wasi", (DeviceType.WEBGPU,)),
    ("darwin", (DeviceType.WEBGPU, DeviceType.METAL)),
    ("win32", (DeviceType.WEBGPU, DeviceType.VULKAN, DeviceType.DX12)),
    ("cygwin", (DeviceType.WEBGPU, DeviceType.VULKAN, DeviceType.DX12)),
    ("linux", (DeviceType.WEBGPU, DeviceType.VULKAN)),
)


def supported_device_types(sys_platform: Optional[str] = None) -> list[DeviceType]:
    """Get the device variants a platform can host.

    Args:
        sys_platform: Value in the form of sys.platform (None = current).

    Returns:
        Cpu followed by the platform's accelerator variants.
    """
    sys_platform = sys.platform if sys_platform is None else sys_platform
    for prefix, devices in _PLATFORM_DEVICES:
        if sys_platform.startswith(prefix):
            return [DeviceType.CPU, *devices]
    return [DeviceType.CPU]


def build_default_registry(sys_platform: Optional[str] = None) -> DeviceRegistry:
    """Build a registry holding the built-in factories for a platform.

    Args:
        sys_platform: Value in the form of sys.platform (None = current).

    Returns:
        Populated DeviceRegistry.
    """
    registry = DeviceRegistry()
    for device_type in supported_device_types(sys_platform):
        if device_type is DeviceType.CPU:
            registry.register(device_type, _cpu_factory)
        else:
            registry.register(device_type, _wgpu_factory(device_type))
    logger.debug(
        "Default device registry: %s",
        [dt.value for dt in registry.registered_types()],
    )
    return registry


_default_registry: Optional[DeviceRegistry] = None
_registry_lock = threading.Lock()


def default_registry() -> DeviceRegistry:
    """Get the process-wide registry, building it on first use."""
    global _default_registry
    if _default_registry is None:
        with _registry_lock:
            if _default_registry is None:
                _default_registry = build_default_registry()
    return _default_registry


def reset_default_registry() -> None:
    """Drop the process-wide registry so the next call rebuilds it."""
    global _default_registry
    with _registry_lock:
        _default_registry = None
