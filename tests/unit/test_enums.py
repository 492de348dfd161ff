"""Tests for CrossGPU enumerations."""
from __future__ import annotations

import json

import pytest


class TestDType:
    """Tests for DType."""

    def test_dtype_values(self) -> None:
        """DType members serialize to short lowercase names."""
        from crossgpu.enums import DType

        assert [d.value for d in DType] == ["f32", "f16", "i8", "i4"]

    def test_dtype_is_str(self) -> None:
        """DType is JSON serializable as a string."""
        from crossgpu.enums import DType

        assert json.dumps({"dtype": DType.F16}) == '{"dtype": "f16"}'

    @pytest.mark.parametrize("name,width", [("F32", 4), ("F16", 2), ("I8", 1), ("I4", 1)])
    def test_byte_width(self, name: str, width: int) -> None:
        """Byte width per element."""
        from crossgpu.enums import DType

        assert DType[name].byte_width == width

    def test_storage_bytes_packs_i4(self) -> None:
        """I4 needs ceil(numel / 2) bytes."""
        from crossgpu.enums import DType

        assert DType.I4.storage_bytes(0) == 0
        assert DType.I4.storage_bytes(1) == 1
        assert DType.I4.storage_bytes(4) == 2
        assert DType.I4.storage_bytes(5) == 3

    def test_storage_bytes_dense(self) -> None:
        """Dense dtypes need numel * byte_width bytes."""
        from crossgpu.enums import DType

        assert DType.F32.storage_bytes(3) == 12
        assert DType.F16.storage_bytes(3) == 6
        assert DType.I8.storage_bytes(3) == 3

    def test_is_float(self) -> None:
        """Only F32 and F16 are floating point."""
        from crossgpu.enums import DType

        assert DType.F32.is_float and DType.F16.is_float
        assert not DType.I8.is_float and not DType.I4.is_float


class TestQuantScheme:
    """Tests for QuantScheme."""

    def test_output_dtype(self) -> None:
        """INT4 produces I4, INT8 schemes produce I8."""
        from crossgpu.enums import DType, QuantScheme

        assert QuantScheme.INT4.output_dtype is DType.I4
        assert QuantScheme.INT8_SYMMETRIC.output_dtype is DType.I8
        assert QuantScheme.INT8_ASYMMETRIC.output_dtype is DType.I8

    def test_code_ranges(self) -> None:
        """Code ranges are the signed integer ranges."""
        from crossgpu.enums import QuantScheme

        assert (QuantScheme.INT4.qmin, QuantScheme.INT4.qmax) == (-8, 7)
        assert (QuantScheme.INT8_SYMMETRIC.qmin, QuantScheme.INT8_SYMMETRIC.qmax) == (-128, 127)


class TestKernelType:
    """Tests for KernelType."""

    def test_catalogue_is_complete(self) -> None:
        """Seven kernel kinds exist."""
        from crossgpu.enums import KernelType

        assert {k.value for k in KernelType} == {
            "matmul",
            "layer_norm",
            "softmax",
            "gelu",
            "fused_gemm_gelu",
            "fused_gemm_layer_norm",
            "attention",
        }

    def test_from_string(self) -> None:
        """KernelType can be constructed from its value."""
        from crossgpu.enums import KernelType

        assert KernelType("gelu") is KernelType.GELU


class TestDeviceType:
    """Tests for DeviceType and the platform rule."""

    @pytest.mark.parametrize(
        "sys_platform,machine,expected",
        [
            ("emscripten", "wasm32", "webgpu"),
            ("wasi", "", "webgpu"),
            ("linux", "wasm32", "webgpu"),
            ("darwin", "arm64", "metal"),
            ("win32", "AMD64", "dx12"),
            ("cygwin", "x86_64", "dx12"),
            ("linux", "x86_64", "vulkan"),
            ("freebsd13", "amd64", "cpu"),
            ("aix", "", "cpu"),
        ],
    )
    def test_platform_default(self, sys_platform: str, machine: str, expected: str) -> None:
        """Each platform maps to exactly one device type."""
        from crossgpu.enums import DeviceType, platform_default

        assert platform_default(sys_platform, machine) is DeviceType(expected)

    def test_default_for_platform_reads_host(self, monkeypatch) -> None:
        """default_for_platform uses sys.platform and platform.machine."""
        import platform
        import sys

        from crossgpu.enums import DeviceType

        monkeypatch.setattr(sys, "platform", "darwin")
        monkeypatch.setattr(platform, "machine", lambda: "arm64")
        assert DeviceType.default_for_platform() is DeviceType.METAL

        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setattr(platform, "machine", lambda: "x86_64")
        assert DeviceType.default_for_platform() is DeviceType.VULKAN

    def test_default_for_platform_is_deterministic(self) -> None:
        """Repeated calls agree."""
        from crossgpu.enums import DeviceType

        assert DeviceType.default_for_platform() is DeviceType.default_for_platform()
