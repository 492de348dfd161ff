"""
CrossGPU Device Tensor Handle

GpuTensor pairs the uploaded shape with an opaque, backend-owned handle.
The concrete handle type is known only to the device that produced it;
the owner token lets that device reject handles minted elsewhere.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class GpuTensor:
    """Device-resident tensor handle.

    Copies share the same handle, so passing one GpuTensor into several
    kernel invocations is cheap.

    Attributes:
        shape: Shape copied from the source Tensor at upload time.
        handle: Backend-specific storage (HostBuffer, WgpuBuffer, ...).
        owner: Identity token of the device that produced the handle.
    """

    shape: tuple[int, ...]
    handle: Any
    owner: int

    def numel(self) -> int:
        """Get the total number of logical elements."""
        return math.prod(self.shape)

    def clone(self) -> "GpuTensor":
        """Return a new GpuTensor sharing this handle."""
        return replace(self)

    def __repr__(self) -> str:
        return (
            f"GpuTensor(shape={list(self.shape)}, "
            f"handle={type(self.handle).__name__})"
        )
