"""Quantization engine.

Pure functions converting F32 tensors to and from compact integer codes:
- INT8 (symmetric/asymmetric): one signed byte per element
- INT4: two signed nibbles per byte, first element in the high nibble

Rounding is half away from zero and clamping saturates.
"""
from __future__ import annotations

import logging

import numpy as np

from crossgpu.enums import DType, QuantScheme
from crossgpu.exceptions import QuantizationError
from crossgpu.quant.params import QuantParams
from crossgpu.tensor import Tensor

logger = logging.getLogger(__name__)


def _round_half_away(values: np.ndarray) -> np.ndarray:
    """Round to nearest integer, ties away from zero.

    NaN encodes as zero.
    """
    wide = values.astype(np.float64)
    rounded = np.sign(wide) * np.floor(np.abs(wide) + 0.5)
    return np.nan_to_num(rounded, nan=0.0)


def _scaled_codes(values: np.ndarray, params: QuantParams) -> np.ndarray:
    # Division happens in f32 so codes match f32 arithmetic exactly.
    with np.errstate(over="ignore", invalid="ignore"):
        scaled = values / np.float32(params.scale)
    return _round_half_away(scaled)


def quantize(tensor: Tensor, params: QuantParams) -> Tensor:
    """Quantize an F32 tensor.

    Args:
        tensor: Source tensor, must be F32.
        params: Quantization parameters.

    Returns:
        I8 tensor (one byte per element) for INT8 schemes, or I4 tensor
        (ceil(numel / 2) bytes) for INT4. Shape is preserved.

    Raises:
        QuantizationError: If tensor is not F32.

    Example:
        >>> t = Tensor.from_floats([2, 2], [1.0, 2.0, 3.0, 4.0])
        >>> q = quantize(t, QuantParams.int8_symmetric(0.1))
        >>> q.dtype
        <DType.I8: 'i8'>
    """
    if tensor.dtype is not DType.F32:
        raise QuantizationError(
            f"Can only quantize F32 tensors, got {tensor.dtype.name}"
        )

    values = tensor.as_float_view()
    codes = _scaled_codes(values, params)

    if params.scheme is QuantScheme.INT4:
        q = np.clip(codes, -8, 7).astype(np.int8)
        if q.size % 2:
            q = np.append(q, np.int8(0))
        high = (q[0::2].astype(np.uint8) & 0x0F) << 4
        low = q[1::2].astype(np.uint8) & 0x0F
        packed = (high | low).astype(np.uint8)
        logger.debug(
            "Quantized %d elements to int4 (%d bytes)", values.size, packed.size
        )
        return Tensor.from_bytes(tensor.shape, DType.I4, packed.tobytes())

    q = np.clip(codes + params.zero_point, -128, 127).astype(np.int8)
    logger.debug("Quantized %d elements to %s", values.size, params.scheme.value)
    return Tensor.from_bytes(tensor.shape, DType.I8, q.tobytes())


def dequantize(tensor: Tensor, params: QuantParams) -> Tensor:
    """Dequantize an I8 or I4 tensor back to F32.

    I8: (q - zero_point) * scale.
    I4: each nibble is sign-extended independently and multiplied by
    scale; the trailing padding nibble of an odd-length tensor is dropped.

    Args:
        tensor: Quantized tensor.
        params: Parameters used when quantizing.

    Returns:
        F32 tensor with the same shape.

    Raises:
        QuantizationError: If tensor is neither I8 nor I4.
    """
    scale = np.float32(params.scale)
    raw = np.frombuffer(bytes(tensor.data), dtype=np.uint8)

    if tensor.dtype is DType.I8:
        q = raw.view(np.int8).astype(np.int32)
        values = (q - params.zero_point).astype(np.float32) * scale
        return Tensor.from_floats(tensor.shape, values)

    if tensor.dtype is DType.I4:
        nibbles = np.empty(raw.size * 2, dtype=np.int16)
        nibbles[0::2] = raw >> 4
        nibbles[1::2] = raw & 0x0F
        nibbles = np.where(nibbles & 0x08, nibbles - 16, nibbles)
        values = nibbles[: tensor.numel()].astype(np.float32) * scale
        return Tensor.from_floats(tensor.shape, values)

    raise QuantizationError(
        f"Can only dequantize I8 or I4 tensors, got {tensor.dtype.name}"
    )


def compression_ratio(original: Tensor, quantized: Tensor) -> float:
    """Get the byte-size ratio between an original and its encoding.

    Args:
        original: Source tensor.
        quantized: Encoded tensor.

    Returns:
        original.nbytes / quantized.nbytes (0.0 if the encoding is empty).
    """
    if quantized.nbytes == 0:
        return 0.0
    return original.nbytes / quantized.nbytes
