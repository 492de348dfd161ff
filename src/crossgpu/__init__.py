"""
CrossGPU - Portable Tensor Compute for Transformer Inference

Host tensors, weight quantization, and one device interface over CPU,
WebGPU, Vulkan, Metal and DirectX 12 backends.

Main APIs:
- Tensor: host n-dimensional array
- quantize() / dequantize(): F32 <-> Int8/Int4 codecs
- auto_detect_device(): platform-default device with CPU fallback
- GpuDevice: upload_tensor / run_kernel / download_tensor / synchronize
- configure() / load_config(): process-wide settings
"""

__version__ = "0.1.0"

from crossgpu.backends.base import GpuDevice
from crossgpu.backends.cpu import CpuDevice
from crossgpu.config import (
    CrossGPUConfig,
    configure,
    get_config,
    load_config,
)
from crossgpu.enums import (
    DeviceType,
    DType,
    KernelType,
    QuantScheme,
)
from crossgpu.exceptions import (
    CrossGPUError,
    GpuError,
    InvalidDimensionError,
    IoError,
    ModelLoadError,
    QuantizationError,
    SerializationError,
    ShapeMismatchError,
    TensorTypeError,
)
from crossgpu.models import GpuTensor, Kernel
from crossgpu.quant import QuantParams, compression_ratio, dequantize, quantize
from crossgpu.registry import DeviceRegistry, default_registry
from crossgpu.selection import (
    DeviceSelection,
    auto_detect_device,
    create_device,
    select_device,
)
from crossgpu.tensor import Tensor

__all__ = [
    "__version__",
    # Core types
    "Tensor",
    "DType",
    "QuantScheme",
    "KernelType",
    "DeviceType",
    "Kernel",
    "GpuTensor",
    # Quantization
    "QuantParams",
    "quantize",
    "dequantize",
    "compression_ratio",
    # Devices
    "GpuDevice",
    "CpuDevice",
    "DeviceRegistry",
    "default_registry",
    "DeviceSelection",
    "create_device",
    "select_device",
    "auto_detect_device",
    # Configuration
    "CrossGPUConfig",
    "configure",
    "get_config",
    "load_config",
    # Errors
    "CrossGPUError",
    "ShapeMismatchError",
    "InvalidDimensionError",
    "TensorTypeError",
    "GpuError",
    "QuantizationError",
    "ModelLoadError",
    "SerializationError",
    "IoError",
]
