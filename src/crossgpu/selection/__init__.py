"""
CrossGPU Device Selection

Platform-default device construction with a single CPU fallback.
"""
from crossgpu.selection.device_selection import (
    DeviceSelection,
    auto_detect_device,
    create_device,
    select_device,
)

__all__ = [
    "DeviceSelection",
    "auto_detect_device",
    "create_device",
    "select_device",
]
