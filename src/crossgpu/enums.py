"""
CrossGPU Core Enumerations

Type-safe enums for element types, quantization schemes, kernel kinds
and device types. All enums inherit from (str, Enum) for JSON
serialization compatibility.

This module provides:
- DType: Tensor element types (f32, f16, i8, packed i4)
- QuantScheme: Quantization schemes (int8 symmetric/asymmetric, int4)
- KernelType: Closed catalogue of dispatchable kernels
- DeviceType: Device backends and the platform default rule
"""
from __future__ import annotations

import platform
import sys
from enum import Enum, unique
from typing import Final


@unique
class DType(str, Enum):
    """Tensor element data types.

    Members:
        F32: 32-bit IEEE-754 float
        F16: 16-bit IEEE-754 float
        I8: Signed 8-bit integer (quantized)
        I4: Signed 4-bit integer, two elements packed per byte
    """

    F32 = "f32"
    F16 = "f16"
    I8 = "i8"
    I4 = "i4"

    @property
    def byte_width(self) -> int:
        """Bytes per element (I4 reports 1; see storage_bytes)."""
        return _BYTE_WIDTH[self]

    @property
    def is_float(self) -> bool:
        """Whether this is a floating-point type."""
        return self in (DType.F32, DType.F16)

    def storage_bytes(self, numel: int) -> int:
        """Get the buffer size needed to hold numel elements.

        I4 packs two elements per byte, rounding odd counts up.

        Args:
            numel: Logical element count.

        Returns:
            Byte length of the backing buffer.
        """
        if self is DType.I4:
            return (numel + 1) // 2
        return numel * _BYTE_WIDTH[self]


_BYTE_WIDTH: Final[dict[DType, int]] = {
    DType.F32: 4,
    DType.F16: 2,
    DType.I8: 1,
    DType.I4: 1,
}


@unique
class QuantScheme(str, Enum):
    """Quantization schemes.

    Members:
        INT8_SYMMETRIC: 8-bit, zero point fixed at 0
        INT8_ASYMMETRIC: 8-bit with integer zero point
        INT4: 4-bit, packed two per byte, zero point ignored
    """

    INT8_SYMMETRIC = "int8_symmetric"
    INT8_ASYMMETRIC = "int8_asymmetric"
    INT4 = "int4"

    @property
    def output_dtype(self) -> DType:
        """DType produced by quantizing under this scheme."""
        return DType.I4 if self is QuantScheme.INT4 else DType.I8

    @property
    def qmin(self) -> int:
        """Smallest representable code."""
        return -8 if self is QuantScheme.INT4 else -128

    @property
    def qmax(self) -> int:
        """Largest representable code."""
        return 7 if self is QuantScheme.INT4 else 127


@unique
class KernelType(str, Enum):
    """Kernel catalogue.

    The set is closed: every device backend handles every member.

    Members:
        MATMUL: Matrix multiplication (GEMM)
        LAYER_NORM: Layer normalization, params[0] is epsilon
        SOFTMAX: Softmax over the last dimension
        GELU: GELU activation
        FUSED_GEMM_GELU: GEMM followed by GELU
        FUSED_GEMM_LAYER_NORM: GEMM followed by layer norm, params[0] is epsilon
        ATTENTION: Scaled dot-product attention
    """

    MATMUL = "matmul"
    LAYER_NORM = "layer_norm"
    SOFTMAX = "softmax"
    GELU = "gelu"
    FUSED_GEMM_GELU = "fused_gemm_gelu"
    FUSED_GEMM_LAYER_NORM = "fused_gemm_layer_norm"
    ATTENTION = "attention"


@unique
class DeviceType(str, Enum):
    """Compute device backends.

    Members:
        CPU: Host fallback, always available
        WEBGPU: WebGPU (browser and native)
        VULKAN: Vulkan (Linux, Windows, Android)
        METAL: Metal (macOS, iOS)
        DX12: DirectX 12 (Windows)
    """

    CPU = "cpu"
    WEBGPU = "webgpu"
    VULKAN = "vulkan"
    METAL = "metal"
    DX12 = "dx12"

    @classmethod
    def default_for_platform(cls) -> "DeviceType":
        """Get the preferred device type for the running platform.

        Browser/WASM targets map to WebGpu, macOS to Metal, Windows to
        Dx12 and Linux to Vulkan. Anything else maps to Cpu.

        Returns:
            Exactly one DeviceType.

        Example:
            >>> DeviceType.default_for_platform()  # on Linux
            <DeviceType.VULKAN: 'vulkan'>
        """
        return platform_default(sys.platform, platform.machine())


# sys.platform prefix -> default device
_PLATFORM_DEFAULTS: Final[tuple[tuple[str, DeviceType], ...]] = (
    ("emscripten", DeviceType.WEBGPU),
    ("wasi", DeviceType.WEBGPU),
    ("darwin", DeviceType.METAL),
    ("win32", DeviceType.DX12),
    ("cygwin", DeviceType.DX12),
    ("linux", DeviceType.VULKAN),
)


def platform_default(sys_platform: str, machine: str = "") -> DeviceType:
    """Map a platform identifier to its default DeviceType.

    Args:
        sys_platform: Value in the form of sys.platform.
        machine: Value in the form of platform.machine().

    Returns:
        DeviceType for that platform.
    """
    if machine.lower().startswith("wasm"):
        return DeviceType.WEBGPU
    for prefix, device_type in _PLATFORM_DEFAULTS:
        if sys_platform.startswith(prefix):
            return device_type
    return DeviceType.CPU
