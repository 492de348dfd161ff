"""Quantization module.

This module provides:
- QuantParams: scale / zero point / scheme
- quantize, dequantize: F32 <-> I8/I4 codecs
- compression_ratio: size reduction of an encoding
"""
from crossgpu.quant.engine import compression_ratio, dequantize, quantize
from crossgpu.quant.params import QuantParams

__all__ = [
    "QuantParams",
    "quantize",
    "dequantize",
    "compression_ratio",
]
