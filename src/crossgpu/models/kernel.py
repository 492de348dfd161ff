"""
CrossGPU Kernel Request

Stateless value describing one unit of work: a kernel kind from the
closed catalogue plus positional float parameters.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from crossgpu.enums import KernelType


@dataclass(frozen=True, slots=True)
class Kernel:
    """Kernel request.

    Parameters are positional and interpreted per kernel type:
    - LAYER_NORM, FUSED_GEMM_LAYER_NORM: params[0] = epsilon
    - ATTENTION: params[0] = scale (<= 0 means 1/sqrt(head_dim)),
      params[1] = causal flag (non-zero enables masking)

    Attributes:
        kernel_type: Which operation to run.
        params: Positional float parameters.

    Example:
        >>> Kernel(KernelType.LAYER_NORM, (1e-5,)).param(0)
        1e-05
    """

    kernel_type: KernelType
    params: tuple[float, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Normalize kernel type and params."""
        object.__setattr__(self, "kernel_type", KernelType(self.kernel_type))
        object.__setattr__(self, "params", tuple(float(p) for p in self.params))

    @classmethod
    def new(cls, kernel_type: KernelType) -> "Kernel":
        """Create a kernel request without parameters."""
        return cls(kernel_type)

    @classmethod
    def with_params(cls, kernel_type: KernelType, params: Sequence[float]) -> "Kernel":
        """Create a kernel request with positional parameters."""
        return cls(kernel_type, tuple(params))

    def param(self, index: int, default: float | None = None) -> float | None:
        """Get a positional parameter, or default when absent.

        Args:
            index: Position in params.
            default: Value returned if params is too short.

        Returns:
            Parameter value or default.
        """
        if 0 <= index < len(self.params):
            return self.params[index]
        return default

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON compatibility."""
        return {
            "kernel_type": self.kernel_type.value,
            "params": list(self.params),
        }
