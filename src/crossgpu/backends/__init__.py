"""
CrossGPU Device Backends

The wgpu backend is imported on demand by the device registry so that
hosts without wgpu-native can still use the CPU device.
"""
from __future__ import annotations

from crossgpu.backends.base import (
    DeviceBuffer,
    GpuDevice,
    KERNEL_HANDLERS,
    KERNEL_MIN_INPUTS,
)
from crossgpu.backends.cpu import CpuDevice, HostBuffer

__all__ = [
    "CpuDevice",
    "DeviceBuffer",
    "GpuDevice",
    "HostBuffer",
    "KERNEL_HANDLERS",
    "KERNEL_MIN_INPUTS",
]
