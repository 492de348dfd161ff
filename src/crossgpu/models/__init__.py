"""
CrossGPU Data Models

Value types exchanged across the device capability interface.
"""
from crossgpu.models.gpu_tensor import GpuTensor
from crossgpu.models.kernel import Kernel

__all__ = [
    "GpuTensor",
    "Kernel",
]
