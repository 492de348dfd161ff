"""
CrossGPU CPU Device

Host-memory device backed by torch CPU tensors. Always constructible and
always available; it is the fallback every other backend degrades to.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Final, Sequence

import numpy as np
import torch

from crossgpu.backends.base import GpuDevice
from crossgpu.backends.cpu import kernels
from crossgpu.config import get_config
from crossgpu.enums import DeviceType, DType
from crossgpu.models.kernel import Kernel
from crossgpu.tensor import NUMPY_DTYPES, Tensor

logger = logging.getLogger(__name__)

CPU_DEVICE_NAME: Final[str] = "CPU"

_TORCH_DTYPES: Final[dict[DType, torch.dtype]] = {
    DType.F32: torch.float32,
    DType.F16: torch.float16,
    DType.I8: torch.int8,
    DType.I4: torch.uint8,
}


@dataclass(frozen=True, slots=True)
class HostBuffer:
    """CPU handle: a private torch tensor plus its logical dtype and shape.

    I4 data stays packed as a flat uint8 tensor, so shape is kept
    separately from array.shape.
    """

    array: torch.Tensor
    dtype: DType
    shape: tuple[int, ...]


class CpuDevice(GpuDevice):
    """CPU compute device.

    Kernels execute eagerly, so synchronize() has nothing to wait for.

    Example:
        >>> device = CpuDevice()
        >>> device.device_name()
        'CPU'
    """

    device_type = DeviceType.CPU
    handle_type = HostBuffer
    kernel_dtypes = frozenset([DType.F32, DType.F16])

    def __init__(self) -> None:
        super().__init__(CPU_DEVICE_NAME)
        config = get_config()
        self._layer_norm_eps = config.default_layer_norm_eps
        if config.cpu_num_threads is not None:
            # The CPU device backs the fallback path and must still come up.
            try:
                torch.set_num_threads(config.cpu_num_threads)
            except (RuntimeError, ValueError) as e:
                logger.warning(
                    "Ignoring cpu_num_threads=%r: %s", config.cpu_num_threads, e
                )
        logger.info(
            "Created CPU device (torch %s, %d threads)",
            torch.__version__, torch.get_num_threads(),
        )

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def _upload(self, tensor: Tensor) -> HostBuffer:
        if tensor.dtype is DType.I4:
            raw = np.frombuffer(bytes(tensor.data), dtype=np.uint8).copy()
            array = torch.from_numpy(raw)
        else:
            array = torch.from_numpy(tensor.to_numpy())
        return HostBuffer(array=array, dtype=tensor.dtype, shape=tuple(tensor.shape))

    def _download(self, handle: HostBuffer) -> Tensor:
        array = handle.array.detach().contiguous().numpy()
        if handle.dtype is not DType.I4:
            array = array.astype(NUMPY_DTYPES[handle.dtype], copy=False)
        return Tensor.from_bytes(handle.shape, handle.dtype, array.tobytes())

    def _synchronize(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Kernels
    # ------------------------------------------------------------------

    def _wrap(self, result: torch.Tensor, like: HostBuffer) -> HostBuffer:
        """Cast a float32 result back to the leading input's dtype."""
        array = result.to(_TORCH_DTYPES[like.dtype]).contiguous()
        return HostBuffer(array=array, dtype=like.dtype, shape=tuple(array.shape))

    @staticmethod
    def _f32(handle: HostBuffer | None) -> torch.Tensor | None:
        if handle is None:
            return None
        return handle.array.to(torch.float32)

    @staticmethod
    def _optional(inputs: Sequence[Any], index: int) -> Any:
        return inputs[index] if len(inputs) > index else None

    def _eps(self, kernel: Kernel) -> float:
        return kernel.param(0, self._layer_norm_eps)

    def _matmul(self, inputs: Sequence[HostBuffer], kernel: Kernel) -> HostBuffer:
        a, b = inputs[0], inputs[1]
        return self._wrap(kernels.matmul(self._f32(a), self._f32(b)), a)

    def _layer_norm(self, inputs: Sequence[HostBuffer], kernel: Kernel) -> HostBuffer:
        x = inputs[0]
        out = kernels.layer_norm(
            self._f32(x),
            self._f32(self._optional(inputs, 1)),
            self._f32(self._optional(inputs, 2)),
            self._eps(kernel),
        )
        return self._wrap(out, x)

    def _softmax(self, inputs: Sequence[HostBuffer], kernel: Kernel) -> HostBuffer:
        x = inputs[0]
        return self._wrap(kernels.softmax(self._f32(x)), x)

    def _gelu(self, inputs: Sequence[HostBuffer], kernel: Kernel) -> HostBuffer:
        x = inputs[0]
        return self._wrap(kernels.gelu(self._f32(x)), x)

    def _fused_gemm_gelu(self, inputs: Sequence[HostBuffer], kernel: Kernel) -> HostBuffer:
        a, b = inputs[0], inputs[1]
        out = kernels.fused_gemm_gelu(
            self._f32(a), self._f32(b), self._f32(self._optional(inputs, 2))
        )
        return self._wrap(out, a)

    def _fused_gemm_layer_norm(
        self, inputs: Sequence[HostBuffer], kernel: Kernel
    ) -> HostBuffer:
        a, b = inputs[0], inputs[1]
        out = kernels.fused_gemm_layer_norm(
            self._f32(a),
            self._f32(b),
            self._f32(self._optional(inputs, 2)),
            self._f32(self._optional(inputs, 3)),
            self._eps(kernel),
        )
        return self._wrap(out, a)

    def _attention(self, inputs: Sequence[HostBuffer], kernel: Kernel) -> HostBuffer:
        q = inputs[0]
        k = inputs[1] if len(inputs) > 1 else q
        v = inputs[2] if len(inputs) > 2 else k
        scale = kernel.param(0, 0.0)
        out = kernels.attention(
            self._f32(q),
            self._f32(k),
            self._f32(v),
            scale=scale if scale > 0 else None,
            is_causal=kernel.param(1, 0.0) != 0.0,
        )
        return self._wrap(out, q)
