"""
CrossGPU Registry

DeviceType -> constructor mapping and the process-wide default registry.
"""
from crossgpu.registry.device_registry import (
    DeviceFactory,
    DeviceRegistry,
    build_default_registry,
    default_registry,
    reset_default_registry,
    supported_device_types,
)

__all__ = [
    "DeviceFactory",
    "DeviceRegistry",
    "build_default_registry",
    "default_registry",
    "reset_default_registry",
    "supported_device_types",
]
