"""
CrossGPU CPU Backend

Host fallback device built on torch CPU kernels.
"""
from __future__ import annotations

from crossgpu.backends.cpu.device import CPU_DEVICE_NAME, CpuDevice, HostBuffer

__all__ = [
    "CPU_DEVICE_NAME",
    "CpuDevice",
    "HostBuffer",
]
