"""
CrossGPU Device Capability Interface

Abstract base class every device backend implements: upload, kernel
dispatch, download, synchronize, and name/availability queries.

Callers depend only on GpuDevice. Backends supply a handle type and one
handler per KernelType; the public methods here own validation, locking,
logging and error wrapping so every backend behaves identically at the
boundary.
"""
from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from threading import RLock
from typing import (
    Any,
    ClassVar,
    Final,
    Generator,
    Protocol,
    Sequence,
    TYPE_CHECKING,
    runtime_checkable,
)

from crossgpu.enums import DeviceType, DType, KernelType
from crossgpu.exceptions import CrossGPUError, GpuError
from crossgpu.models.gpu_tensor import GpuTensor
from crossgpu.models.kernel import Kernel

if TYPE_CHECKING:
    from crossgpu.tensor import Tensor

logger = logging.getLogger(__name__)


@runtime_checkable
class DeviceBuffer(Protocol):
    """Minimal contract of a backend handle."""

    shape: tuple[int, ...]
    dtype: DType


# KernelType -> handler method name. Covers the whole catalogue.
KERNEL_HANDLERS: Final[dict[KernelType, str]] = {
    KernelType.MATMUL: "_matmul",
    KernelType.LAYER_NORM: "_layer_norm",
    KernelType.SOFTMAX: "_softmax",
    KernelType.GELU: "_gelu",
    KernelType.FUSED_GEMM_GELU: "_fused_gemm_gelu",
    KernelType.FUSED_GEMM_LAYER_NORM: "_fused_gemm_layer_norm",
    KernelType.ATTENTION: "_attention",
}

# Minimum number of input tensors per kernel
KERNEL_MIN_INPUTS: Final[dict[KernelType, int]] = {
    KernelType.MATMUL: 2,
    KernelType.LAYER_NORM: 1,
    KernelType.SOFTMAX: 1,
    KernelType.GELU: 1,
    KernelType.FUSED_GEMM_GELU: 2,
    KernelType.FUSED_GEMM_LAYER_NORM: 2,
    KernelType.ATTENTION: 1,
}

_owner_tokens = itertools.count(1)


class GpuDevice(ABC):
    """Abstract compute device.

    Thread-safe: every operation on one device runs under that device's
    lock, so a single instance may be shared across threads. Operations
    issued by one caller are observed in issue order once synchronize()
    returns.

    Subclasses set:
        device_type: DeviceType of the backend.
        handle_type: Concrete DeviceBuffer class stored in GpuTensor.handle.
        kernel_dtypes: Element types accepted by kernels.
    """

    device_type: ClassVar[DeviceType]
    handle_type: ClassVar[type]
    kernel_dtypes: ClassVar[frozenset[DType]] = frozenset([DType.F32])

    def __init__(self, name: str) -> None:
        """Initialize device bookkeeping.

        Args:
            name: Stable human-readable identifier.
        """
        self._name = name
        self._lock = RLock()
        self._closed = False
        self._token = next(_owner_tokens)

    # ------------------------------------------------------------------
    # Capability interface
    # ------------------------------------------------------------------

    def upload_tensor(self, tensor: "Tensor") -> GpuTensor:
        """Copy a host tensor into device-resident form.

        The source tensor is never mutated and no aliasing with its
        buffer is kept.

        Args:
            tensor: Host tensor.

        Returns:
            GpuTensor with the tensor's exact shape.

        Raises:
            GpuError: If the device is closed or the transfer fails.
        """
        with self._lock:
            self._ensure_open()
            with self._wrap_errors("upload"):
                handle = self._upload(tensor)
        logger.debug(
            "Uploaded %s tensor %s to %s",
            tensor.dtype.name, list(tensor.shape), self._name,
        )
        return GpuTensor(shape=tuple(tensor.shape), handle=handle, owner=self._token)

    def run_kernel(self, kernel: Kernel, inputs: Sequence[GpuTensor]) -> GpuTensor:
        """Dispatch a kernel against device-resident inputs.

        Args:
            kernel: Kernel request.
            inputs: Device tensors produced by this device.

        Returns:
            GpuTensor holding the result.

        Raises:
            GpuError: If inputs is empty, an input belongs to another
                device, required inputs are missing, an input dtype is
                unsupported, or the backend fails.
        """
        inputs = list(inputs)
        if not inputs:
            raise GpuError("No input tensors", device=self._name)

        kernel_type = KernelType(kernel.kernel_type)
        minimum = KERNEL_MIN_INPUTS[kernel_type]
        if len(inputs) < minimum:
            raise GpuError(
                f"{kernel_type.value} requires at least {minimum} inputs, "
                f"got {len(inputs)}",
                device=self._name,
            )

        handles = [self._unwrap(t) for t in inputs]
        for handle in handles:
            if handle.dtype not in self.kernel_dtypes:
                raise GpuError(
                    f"{kernel_type.value} does not support {handle.dtype.name} "
                    f"inputs on {self._name}",
                    device=self._name,
                )

        logger.debug("Running %s kernel on %s", kernel_type.value, self._name)
        handler = getattr(self, KERNEL_HANDLERS[kernel_type])
        with self._lock:
            self._ensure_open()
            with self._wrap_errors(kernel_type.value):
                result = handler(handles, kernel)
        return GpuTensor(shape=tuple(result.shape), handle=result, owner=self._token)

    def download_tensor(self, gpu_tensor: GpuTensor) -> "Tensor":
        """Materialize device-resident data as a host tensor.

        Args:
            gpu_tensor: Handle produced by this device.

        Returns:
            Host Tensor.

        Raises:
            GpuError: If the handle belongs to another device or the
                transfer fails.
        """
        handle = self._unwrap(gpu_tensor)
        with self._lock:
            self._ensure_open()
            with self._wrap_errors("download"):
                tensor = self._download(handle)
        logger.debug("Downloaded tensor %s from %s", list(tensor.shape), self._name)
        return tensor

    def synchronize(self) -> None:
        """Block until all previously dispatched work has completed.

        Raises:
            GpuError: If the device is closed or waiting fails.
        """
        with self._lock:
            self._ensure_open()
            with self._wrap_errors("synchronize"):
                self._synchronize()

    def device_name(self) -> str:
        """Get the stable human-readable device identifier."""
        return self._name

    def is_available(self) -> bool:
        """Check whether the device can currently accept work."""
        return not self._closed and self._probe_available()

    def close(self) -> None:
        """Release backend resources. Later operations raise GpuError."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            with self._wrap_errors("close"):
                self._release()
        logger.debug("Closed device %s", self._name)

    def owns(self, gpu_tensor: GpuTensor) -> bool:
        """Check whether a handle was produced by this device."""
        return (
            isinstance(gpu_tensor, GpuTensor)
            and gpu_tensor.owner == self._token
            and isinstance(gpu_tensor.handle, self.handle_type)
        )

    def __enter__(self) -> "GpuDevice":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r})"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise GpuError("Device is closed", device=self._name)

    def _unwrap(self, gpu_tensor: GpuTensor) -> Any:
        """Return the backend handle of a GpuTensor owned by this device."""
        if not self.owns(gpu_tensor):
            handle_name = type(getattr(gpu_tensor, "handle", gpu_tensor)).__name__
            raise GpuError(
                f"Invalid tensor handle: {handle_name} was not produced by "
                f"{self._name}",
                device=self._name,
            )
        return gpu_tensor.handle

    @contextmanager
    def _wrap_errors(self, op: str) -> Generator[None, None, None]:
        """Convert backend-native exceptions into GpuError."""
        try:
            yield
        except CrossGPUError:
            raise
        except Exception as e:
            raise GpuError(f"{op} failed on {self._name}: {e}", device=self._name) from e

    def _release(self) -> None:
        """Free backend resources. Default: nothing to free."""

    def _probe_available(self) -> bool:
        """Backend liveness check. Default: usable once constructed."""
        return True

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _upload(self, tensor: "Tensor") -> Any:
        """Create a handle holding a copy of tensor."""

    @abstractmethod
    def _download(self, handle: Any) -> "Tensor":
        """Copy a handle's contents back into a host Tensor."""

    @abstractmethod
    def _synchronize(self) -> None:
        """Wait for queued work."""

    @abstractmethod
    def _matmul(self, inputs: Sequence[Any], kernel: Kernel) -> Any:
        """a[..., m, k] @ b[k, n]."""

    @abstractmethod
    def _layer_norm(self, inputs: Sequence[Any], kernel: Kernel) -> Any:
        """Layer norm over the last dim with optional gamma/beta."""

    @abstractmethod
    def _softmax(self, inputs: Sequence[Any], kernel: Kernel) -> Any:
        """Softmax over the last dim."""

    @abstractmethod
    def _gelu(self, inputs: Sequence[Any], kernel: Kernel) -> Any:
        """Tanh-approximate GELU."""

    @abstractmethod
    def _fused_gemm_gelu(self, inputs: Sequence[Any], kernel: Kernel) -> Any:
        """gelu(a @ b + bias)."""

    @abstractmethod
    def _fused_gemm_layer_norm(self, inputs: Sequence[Any], kernel: Kernel) -> Any:
        """layer_norm(a @ b) with optional gamma/beta."""

    @abstractmethod
    def _attention(self, inputs: Sequence[Any], kernel: Kernel) -> Any:
        """Scaled dot-product attention."""
