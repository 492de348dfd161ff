"""Quantization parameters.

QuantParams binds a scale, an integer zero point and a scheme. A value is
only meaningful for tensors encoded under the same scheme.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import numpy as np

from crossgpu.enums import DType, QuantScheme
from crossgpu.exceptions import QuantizationError

if TYPE_CHECKING:
    from crossgpu.tensor import Tensor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuantParams:
    """Quantization parameters.

    real = (code - zero_point) * scale

    Attributes:
        scale: Positive step size between adjacent codes.
        zero_point: Integer offset, only used by INT8_ASYMMETRIC.
        scheme: Quantization scheme.
    """

    scale: float
    zero_point: int = 0
    scheme: QuantScheme = QuantScheme.INT8_SYMMETRIC

    def __post_init__(self) -> None:
        """Validate parameter values."""
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise QuantizationError(
                f"scale must be a positive finite number, got {self.scale}"
            )
        object.__setattr__(self, "scheme", QuantScheme(self.scheme))
        object.__setattr__(self, "zero_point", int(self.zero_point))

    @classmethod
    def int8_symmetric(cls, scale: float) -> "QuantParams":
        """Create symmetric 8-bit parameters."""
        return cls(scale=scale, zero_point=0, scheme=QuantScheme.INT8_SYMMETRIC)

    @classmethod
    def int8_asymmetric(cls, scale: float, zero_point: int) -> "QuantParams":
        """Create asymmetric 8-bit parameters."""
        return cls(
            scale=scale,
            zero_point=zero_point,
            scheme=QuantScheme.INT8_ASYMMETRIC,
        )

    @classmethod
    def int4(cls, scale: float) -> "QuantParams":
        """Create 4-bit parameters."""
        return cls(scale=scale, zero_point=0, scheme=QuantScheme.INT4)

    @classmethod
    def from_tensor(cls, tensor: "Tensor", scheme: QuantScheme) -> "QuantParams":
        """Calibrate parameters from the value range of an F32 tensor.

        Symmetric schemes use absmax / qmax. The asymmetric scheme maps
        [min(x, 0), max(x, 0)] onto [-128, 127].

        Args:
            tensor: F32 tensor to calibrate on.
            scheme: Target scheme.

        Returns:
            QuantParams covering the tensor's range. An all-zero or empty
            tensor gets scale 1.0.

        Raises:
            QuantizationError: If the tensor is not F32 or holds no finite values.
        """
        if tensor.dtype is not DType.F32:
            raise QuantizationError(
                f"Can only calibrate on F32 tensors, got {tensor.dtype.name}"
            )
        scheme = QuantScheme(scheme)
        values = tensor.as_float_view()
        if values.size and not np.isfinite(values).any():
            raise QuantizationError("Tensor has no finite values to calibrate on")
        finite = values[np.isfinite(values)]

        if scheme is QuantScheme.INT8_ASYMMETRIC:
            lo = min(float(finite.min()), 0.0) if finite.size else 0.0
            hi = max(float(finite.max()), 0.0) if finite.size else 0.0
            span = hi - lo
            if span == 0.0:
                return cls.int8_asymmetric(1.0, 0)
            scale = span / (scheme.qmax - scheme.qmin)
            zero_point = int(round(scheme.qmin - lo / scale))
            zero_point = max(scheme.qmin, min(scheme.qmax, zero_point))
            logger.debug(
                "Calibrated %s: scale=%g zero_point=%d", scheme.value, scale, zero_point
            )
            return cls.int8_asymmetric(scale, zero_point)

        absmax = float(np.abs(finite).max()) if finite.size else 0.0
        scale = absmax / scheme.qmax if absmax > 0.0 else 1.0
        logger.debug("Calibrated %s: scale=%g", scheme.value, scale)
        return cls(scale=scale, zero_point=0, scheme=scheme)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON compatibility."""
        return {
            "scale": self.scale,
            "zero_point": self.zero_point,
            "scheme": self.scheme.value,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "QuantParams":
        """Deserialize from dictionary."""
        return cls(
            scale=float(d["scale"]),
            zero_point=int(d.get("zero_point", 0)),
            scheme=QuantScheme(d.get("scheme", QuantScheme.INT8_SYMMETRIC.value)),
        )
