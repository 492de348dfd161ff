"""
CrossGPU wgpu Backend

WebGPU, Vulkan, Metal and DirectX 12 devices through wgpu-native, with
kernels written as WGSL compute shaders.
"""
from __future__ import annotations

from crossgpu.backends.wgpu.device import (
    Dx12Device,
    MetalDevice,
    VulkanDevice,
    WebGpuDevice,
    WGPU_DEVICES,
    WgpuBuffer,
    WgpuDevice,
)

__all__ = [
    "Dx12Device",
    "MetalDevice",
    "VulkanDevice",
    "WebGpuDevice",
    "WGPU_DEVICES",
    "WgpuBuffer",
    "WgpuDevice",
]
