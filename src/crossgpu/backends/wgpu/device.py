"""
CrossGPU wgpu Devices

GPU devices driven through wgpu-native. One base class owns adapter
selection, buffer transfers, pipeline caching and command submission;
the WebGpu/Vulkan/Metal/Dx12 variants differ only in which adapter
backend they accept and which host platforms can run them.

Execution is queued: run_kernel records and submits a compute pass and
returns immediately. synchronize() waits for the queue to drain, and
download_tensor observes every earlier submission.
"""
from __future__ import annotations

import logging
import math
import struct
import sys
from dataclasses import dataclass
from typing import Any, ClassVar, Final, Optional, Sequence

import numpy as np
import wgpu
import wgpu.backends.wgpu_native  # noqa: F401

from crossgpu.backends.base import GpuDevice
from crossgpu.backends.wgpu import shaders
from crossgpu.config import get_config
from crossgpu.enums import DeviceType, DType
from crossgpu.exceptions import CrossGPUError, GpuError
from crossgpu.models.kernel import Kernel
from crossgpu.tensor import Tensor

logger = logging.getLogger(__name__)

# Per-dimension dispatch limit guaranteed by WebGPU
MAX_WORKGROUPS_PER_DIM: Final[int] = 65535

_STORAGE_USAGE = (
    wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_DST | wgpu.BufferUsage.COPY_SRC
)
_UNIFORM_USAGE = wgpu.BufferUsage.UNIFORM | wgpu.BufferUsage.COPY_DST

_BINDING_TYPES: Final[dict[str, str]] = {
    "read": "read-only-storage",
    "read_write": "storage",
    "uniform": "uniform",
}


@dataclass(frozen=True, slots=True)
class WgpuBuffer:
    """wgpu handle: a storage buffer plus logical dtype, shape and length.

    The buffer may be larger than nbytes; storage buffers are padded to a
    4-byte multiple with a 4-byte minimum.
    """

    buffer: Any
    dtype: DType
    shape: tuple[int, ...]
    nbytes: int


def _padded_size(nbytes: int) -> int:
    return max(4, (nbytes + 3) // 4 * 4)


def _grid(groups: int) -> tuple[int, int]:
    """Split a workgroup count over x and y to respect per-dim limits."""
    if groups <= MAX_WORKGROUPS_PER_DIM:
        return groups, 1
    return MAX_WORKGROUPS_PER_DIM, math.ceil(groups / MAX_WORKGROUPS_PER_DIM)


def _matmul_grid(m: int, n: int) -> tuple[int, int, int]:
    """Column tiles on x; row tiles split over y and z."""
    tile = shaders.MATMUL_TILE
    col_tiles = math.ceil(n / tile)
    if col_tiles > MAX_WORKGROUPS_PER_DIM:
        raise GpuError(
            f"matmul output has {n} columns; at most "
            f"{MAX_WORKGROUPS_PER_DIM * tile} fit in one dispatch"
        )
    return (col_tiles, *_grid(math.ceil(m / tile)))


class WgpuDevice(GpuDevice):
    """Base class for wgpu-backed devices.

    Subclasses set:
        device_type: DeviceType of the variant.
        backend_label: Name used in device names and errors.
        adapter_backend: wgpu adapter backend_type to accept (None = any).
        host_platforms: sys.platform prefixes that can host the variant
            (empty = any).
    """

    handle_type = WgpuBuffer
    kernel_dtypes = frozenset([DType.F32])

    backend_label: ClassVar[str]
    adapter_backend: ClassVar[Optional[str]] = None
    host_platforms: ClassVar[tuple[str, ...]] = ()

    def __init__(self, power_preference: Optional[str] = None) -> None:
        """Request an adapter and open a logical device.

        Args:
            power_preference: "high-performance" or "low-power"
                (None = configured value).

        Raises:
            GpuError: If the platform cannot host this backend, no
                matching adapter exists, or device creation fails.
        """
        label = self.backend_label
        if self.host_platforms and not sys.platform.startswith(self.host_platforms):
            raise GpuError(f"{label} backend not available on this platform")

        config = get_config()
        power = power_preference or config.power_preference
        try:
            adapter = self._request_adapter(power)
            if adapter is None:
                raise GpuError(f"No {label} adapter found")
            info = dict(adapter.info)
            adapter_name = info.get("device") or info.get("description") or "unknown"
            name = f"{label} ({adapter_name})"
            device = adapter.request_device_sync(label=name)
        except CrossGPUError:
            raise
        except Exception as e:
            raise GpuError(f"Failed to initialize {label} device: {e}") from e

        super().__init__(name)
        self._adapter = adapter
        self._device = device
        self._adapter_info = info
        self._layer_norm_eps = config.default_layer_norm_eps
        self._pipelines: dict[str, Any] = {}
        logger.info(
            "Created %s device on %s adapter (%s)",
            label, info.get("backend_type", "?"), adapter_name,
        )

    @property
    def adapter_info(self) -> dict[str, Any]:
        """wgpu adapter info (vendor, device, backend_type, ...)."""
        return dict(self._adapter_info)

    def _request_adapter(self, power_preference: str) -> Any:
        """Pick an adapter for this backend, or None when none matches."""
        if self.adapter_backend is None:
            return wgpu.gpu.request_adapter_sync(power_preference=power_preference)

        wanted = self.adapter_backend.lower()
        matches = [
            adapter for adapter in wgpu.gpu.enumerate_adapters_sync()
            if str(adapter.info.get("backend_type", "")).lower() == wanted
        ]
        if not matches:
            return None
        preferred_type = (
            "discretegpu" if power_preference == "high-performance" else "integratedgpu"
        )
        matches.sort(
            key=lambda a: str(a.info.get("adapter_type", "")).lower() != preferred_type
        )
        return matches[0]

    # ------------------------------------------------------------------
    # Buffers and dispatch
    # ------------------------------------------------------------------

    def _storage(self, nbytes: int) -> Any:
        return self._device.create_buffer(size=_padded_size(nbytes), usage=_STORAGE_USAGE)

    def _storage_from(self, data: bytes) -> Any:
        padded = bytes(data) + b"\x00" * (_padded_size(len(data)) - len(data))
        return self._device.create_buffer_with_data(data=padded, usage=_STORAGE_USAGE)

    def _uniform(self, fmt: str, *values: Any) -> Any:
        return self._device.create_buffer_with_data(
            data=struct.pack(fmt, *values), usage=_UNIFORM_USAGE
        )

    def _new_handle(self, shape: Sequence[int]) -> WgpuBuffer:
        shape = tuple(shape)
        nbytes = math.prod(shape) * DType.F32.byte_width
        return WgpuBuffer(
            buffer=self._storage(nbytes), dtype=DType.F32, shape=shape, nbytes=nbytes
        )

    def _constant(self, value: float, count: int) -> Any:
        return self._storage_from(np.full(count, value, dtype=np.float32).tobytes())

    def _pipeline(self, name: str) -> Any:
        """Get the compute pipeline for a shader, compiling on first use."""
        pipeline = self._pipelines.get(name)
        if pipeline is not None:
            return pipeline

        source, access = shaders.SHADERS[name]
        module = self._device.create_shader_module(code=source)
        entries = [
            {
                "binding": i,
                "visibility": wgpu.ShaderStage.COMPUTE,
                "buffer": {"type": _BINDING_TYPES[mode], "has_dynamic_offset": False},
            }
            for i, mode in enumerate(access)
        ]
        bind_group_layout = self._device.create_bind_group_layout(entries=entries)
        pipeline_layout = self._device.create_pipeline_layout(
            bind_group_layouts=[bind_group_layout]
        )
        pipeline = self._device.create_compute_pipeline(
            layout=pipeline_layout,
            compute={"module": module, "entry_point": "main"},
        )
        self._pipelines[name] = pipeline
        logger.debug("Compiled %s pipeline on %s", name, self._name)
        return pipeline

    def _dispatch(
        self,
        name: str,
        buffers: Sequence[Any],
        workgroups: tuple[int, ...],
    ) -> None:
        """Record and submit one compute pass without waiting for it."""
        pipeline = self._pipeline(name)
        bind_group = self._device.create_bind_group(
            layout=pipeline.get_bind_group_layout(0),
            entries=[
                {
                    "binding": i,
                    "resource": {"buffer": buf, "offset": 0, "size": buf.size},
                }
                for i, buf in enumerate(buffers)
            ],
        )
        encoder = self._device.create_command_encoder()
        compute_pass = encoder.begin_compute_pass()
        compute_pass.set_pipeline(pipeline)
        compute_pass.set_bind_group(0, bind_group)
        compute_pass.dispatch_workgroups(*workgroups)
        compute_pass.end()
        self._device.queue.submit([encoder.finish()])

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def _upload(self, tensor: Tensor) -> WgpuBuffer:
        return WgpuBuffer(
            buffer=self._storage_from(tensor.data),
            dtype=tensor.dtype,
            shape=tuple(tensor.shape),
            nbytes=tensor.nbytes,
        )

    def _download(self, handle: WgpuBuffer) -> Tensor:
        data = self._device.queue.read_buffer(handle.buffer)
        return Tensor.from_bytes(handle.shape, handle.dtype, bytes(data[: handle.nbytes]))

    def _synchronize(self) -> None:
        self._device.queue.on_submitted_work_done_sync()

    def _release(self) -> None:
        self._pipelines.clear()
        self._device.destroy()

    # ------------------------------------------------------------------
    # Kernels
    # ------------------------------------------------------------------

    @staticmethod
    def _rows(shape: Sequence[int]) -> tuple[int, int]:
        """Split a shape into (rows, width) over the last dimension."""
        if not shape:
            return 1, 1
        width = shape[-1]
        return (math.prod(shape[:-1]) if width else 0), width

    def _vector(self, handle: Optional[WgpuBuffer], width: int, fill: float, role: str) -> Any:
        """Buffer for an optional per-column vector, or a constant one."""
        if handle is None:
            return self._constant(fill, width)
        if math.prod(handle.shape) != width:
            raise GpuError(
                f"{role} must hold {width} values, got shape {list(handle.shape)}",
                device=self._name,
            )
        return handle.buffer

    def _gemm(
        self,
        a: WgpuBuffer,
        b: WgpuBuffer,
        bias: Optional[WgpuBuffer] = None,
        apply_gelu: bool = False,
    ) -> WgpuBuffer:
        if len(b.shape) != 2:
            raise GpuError(
                f"matmul weight must be 2-D, got shape {list(b.shape)}", device=self._name
            )
        if not a.shape or a.shape[-1] != b.shape[0]:
            raise GpuError(
                f"matmul inner dimensions differ: {list(a.shape)} @ {list(b.shape)}",
                device=self._name,
            )
        k, n = b.shape
        m = math.prod(a.shape[:-1])
        out = self._new_handle(a.shape[:-1] + (n,))
        if m == 0 or n == 0:
            return out

        flags = 0
        bias_buffer = self._vector(bias, n, 0.0, "bias")
        if bias is not None:
            flags |= shaders.MATMUL_FLAG_BIAS
        if apply_gelu:
            flags |= shaders.MATMUL_FLAG_GELU

        grid = _matmul_grid(m, n)
        params = self._uniform(shaders.MATMUL_PARAMS, m, k, n, flags)
        self._dispatch(
            "matmul",
            [a.buffer, b.buffer, bias_buffer, out.buffer, params],
            grid,
        )
        return out

    def _norm(
        self,
        x: WgpuBuffer,
        gamma: Optional[WgpuBuffer],
        beta: Optional[WgpuBuffer],
        eps: float,
    ) -> WgpuBuffer:
        out = self._new_handle(x.shape)
        rows, width = self._rows(x.shape)
        if rows == 0:
            return out
        gamma_buffer = self._vector(gamma, width, 1.0, "gamma")
        beta_buffer = self._vector(beta, width, 0.0, "beta")
        params = self._uniform(shaders.LAYER_NORM_PARAMS, rows, width, eps, 0)
        self._dispatch(
            "layer_norm",
            [x.buffer, gamma_buffer, beta_buffer, out.buffer, params],
            _grid(rows),
        )
        return out

    @staticmethod
    def _optional(inputs: Sequence[Any], index: int) -> Any:
        return inputs[index] if len(inputs) > index else None

    def _eps(self, kernel: Kernel) -> float:
        return kernel.param(0, self._layer_norm_eps)

    def _matmul(self, inputs: Sequence[WgpuBuffer], kernel: Kernel) -> WgpuBuffer:
        return self._gemm(inputs[0], inputs[1])

    def _layer_norm(self, inputs: Sequence[WgpuBuffer], kernel: Kernel) -> WgpuBuffer:
        return self._norm(
            inputs[0],
            self._optional(inputs, 1),
            self._optional(inputs, 2),
            self._eps(kernel),
        )

    def _softmax(self, inputs: Sequence[WgpuBuffer], kernel: Kernel) -> WgpuBuffer:
        x = inputs[0]
        out = self._new_handle(x.shape)
        rows, width = self._rows(x.shape)
        if rows == 0:
            return out
        params = self._uniform(shaders.SOFTMAX_PARAMS, rows, width, 0, 0)
        self._dispatch("softmax", [x.buffer, out.buffer, params], _grid(rows))
        return out

    def _gelu(self, inputs: Sequence[WgpuBuffer], kernel: Kernel) -> WgpuBuffer:
        x = inputs[0]
        out = self._new_handle(x.shape)
        n = math.prod(x.shape)
        if n == 0:
            return out
        params = self._uniform(shaders.GELU_PARAMS, n, 0, 0, 0)
        self._dispatch(
            "gelu",
            [x.buffer, out.buffer, params],
            _grid(math.ceil(n / shaders.WORKGROUP_SIZE)),
        )
        return out

    def _fused_gemm_gelu(self, inputs: Sequence[WgpuBuffer], kernel: Kernel) -> WgpuBuffer:
        return self._gemm(
            inputs[0], inputs[1], bias=self._optional(inputs, 2), apply_gelu=True
        )

    def _fused_gemm_layer_norm(
        self, inputs: Sequence[WgpuBuffer], kernel: Kernel
    ) -> WgpuBuffer:
        product = self._gemm(inputs[0], inputs[1])
        return self._norm(
            product,
            self._optional(inputs, 2),
            self._optional(inputs, 3),
            self._eps(kernel),
        )

    def _attention(self, inputs: Sequence[WgpuBuffer], kernel: Kernel) -> WgpuBuffer:
        q = inputs[0]
        k = inputs[1] if len(inputs) > 1 else q
        v = inputs[2] if len(inputs) > 2 else k
        if len(q.shape) < 2 or len(k.shape) != len(q.shape) or len(v.shape) != len(q.shape):
            raise GpuError(
                f"attention inputs must share rank >= 2, got "
                f"{list(q.shape)}, {list(k.shape)}, {list(v.shape)}",
                device=self._name,
            )
        *batch, seq_q, head_dim = q.shape
        seq_k = k.shape[-2]
        head_dim_v = v.shape[-1]
        if (
            tuple(k.shape[:-2]) != tuple(batch)
            or tuple(v.shape[:-2]) != tuple(batch)
            or k.shape[-1] != head_dim
            or v.shape[-2] != seq_k
        ):
            raise GpuError(
                f"attention shapes are incompatible: q={list(q.shape)}, "
                f"k={list(k.shape)}, v={list(v.shape)}",
                device=self._name,
            )

        out = self._new_handle(tuple(batch) + (seq_q, head_dim_v))
        rows = math.prod(batch) * seq_q
        if rows == 0 or head_dim_v == 0:
            return out

        scale = kernel.param(0, 0.0)
        if scale <= 0:
            scale = 1.0 / math.sqrt(head_dim) if head_dim else 1.0
        causal = 1 if kernel.param(1, 0.0) != 0.0 else 0
        params = self._uniform(
            shaders.ATTENTION_PARAMS,
            rows, seq_q, seq_k, head_dim, head_dim_v, causal, scale, 0,
        )
        self._dispatch(
            "attention",
            [q.buffer, k.buffer, v.buffer, out.buffer, params],
            _grid(math.ceil(rows / shaders.ATTENTION_WORKGROUP_SIZE)),
        )
        return out


class WebGpuDevice(WgpuDevice):
    """WebGPU device on whichever adapter wgpu selects."""

    device_type = DeviceType.WEBGPU
    backend_label = "WebGPU"


class VulkanDevice(WgpuDevice):
    """Vulkan device (Linux, Windows)."""

    device_type = DeviceType.VULKAN
    backend_label = "Vulkan"
    adapter_backend = "Vulkan"
    host_platforms = ("linux", "win32")


class MetalDevice(WgpuDevice):
    """Metal device (macOS)."""

    device_type = DeviceType.METAL
    backend_label = "Metal"
    adapter_backend = "Metal"
    host_platforms = ("darwin",)


class Dx12Device(WgpuDevice):
    """DirectX 12 device (Windows)."""

    device_type = DeviceType.DX12
    backend_label = "DirectX 12"
    adapter_backend = "D3D12"
    host_platforms = ("win32",)


WGPU_DEVICES: Final[dict[DeviceType, type[WgpuDevice]]] = {
    DeviceType.WEBGPU: WebGpuDevice,
    DeviceType.VULKAN: VulkanDevice,
    DeviceType.METAL: MetalDevice,
    DeviceType.DX12: Dx12Device,
}
