"""Numerical checks of the WGSL kernels on a real adapter.

Skipped when wgpu-native finds no adapter on the host.
"""
from __future__ import annotations

import numpy as np
import pytest

pytestmark = pytest.mark.gpu


@pytest.fixture
def gpu_device():
    from crossgpu.backends.wgpu import WebGpuDevice
    from crossgpu.exceptions import GpuError

    try:
        device = WebGpuDevice()
    except GpuError as e:
        pytest.skip(f"No wgpu adapter: {e.message}")
    yield device
    device.close()


def _compare(gpu_device, cpu_device, kernel, arrays, atol=1e-4):
    from crossgpu.tensor import Tensor

    results = []
    for device in (gpu_device, cpu_device):
        handles = [device.upload_tensor(Tensor.from_numpy(a)) for a in arrays]
        out = device.run_kernel(kernel, handles)
        device.synchronize()
        results.append(device.download_tensor(out).to_numpy())
    np.testing.assert_allclose(results[0], results[1], rtol=1e-4, atol=atol)


class TestWgslKernels:
    """WGSL kernels agree with the CPU device."""

    def test_matmul(self, gpu_device, cpu_device, rng) -> None:
        """Tiled matmul on a shape that is not a tile multiple."""
        from crossgpu.enums import KernelType
        from crossgpu.models import Kernel

        a = rng.standard_normal((37, 19)).astype(np.float32)
        b = rng.standard_normal((19, 23)).astype(np.float32)
        _compare(gpu_device, cpu_device, Kernel.new(KernelType.MATMUL), [a, b])

    def test_fused_gemm_gelu(self, gpu_device, cpu_device, rng) -> None:
        """GEMM with bias and GELU epilogue."""
        from crossgpu.enums import KernelType
        from crossgpu.models import Kernel

        a = rng.standard_normal((8, 16)).astype(np.float32)
        b = rng.standard_normal((16, 12)).astype(np.float32)
        bias = rng.standard_normal(12).astype(np.float32)
        _compare(gpu_device, cpu_device, Kernel.new(KernelType.FUSED_GEMM_GELU), [a, b, bias])

    def test_layer_norm(self, gpu_device, cpu_device, rng) -> None:
        """Row-wise layer norm with gamma and beta."""
        from crossgpu.enums import KernelType
        from crossgpu.models import Kernel

        x = rng.standard_normal((6, 300)).astype(np.float32)
        gamma = rng.standard_normal(300).astype(np.float32)
        beta = rng.standard_normal(300).astype(np.float32)
        _compare(
            gpu_device, cpu_device,
            Kernel.with_params(KernelType.LAYER_NORM, [1e-5]), [x, gamma, beta],
        )

    def test_softmax(self, gpu_device, cpu_device, rng) -> None:
        """Row-wise softmax."""
        from crossgpu.enums import KernelType
        from crossgpu.models import Kernel

        x = (rng.standard_normal((4, 513)) * 5).astype(np.float32)
        _compare(gpu_device, cpu_device, Kernel.new(KernelType.SOFTMAX), [x], atol=1e-6)

    def test_gelu(self, gpu_device, cpu_device) -> None:
        """Element-wise GELU."""
        from crossgpu.enums import KernelType
        from crossgpu.models import Kernel

        x = np.linspace(-5, 5, 1000, dtype=np.float32)
        _compare(gpu_device, cpu_device, Kernel.new(KernelType.GELU), [x])

    def test_causal_attention(self, gpu_device, cpu_device, rng) -> None:
        """Batched causal attention."""
        from crossgpu.enums import KernelType
        from crossgpu.models import Kernel

        q = rng.standard_normal((2, 5, 8)).astype(np.float32)
        k = rng.standard_normal((2, 5, 8)).astype(np.float32)
        v = rng.standard_normal((2, 5, 4)).astype(np.float32)
        _compare(
            gpu_device, cpu_device,
            Kernel.with_params(KernelType.ATTENTION, [0.0, 1.0]), [q, k, v],
        )
