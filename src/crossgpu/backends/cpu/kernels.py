"""
CrossGPU CPU Kernels

torch.nn.functional implementations of the kernel catalogue. All math
runs in float32; callers cast results back to the input dtype.
"""
from __future__ import annotations

import math

import torch
import torch.nn.functional as F


def matmul(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """Matrix product a[..., m, k] @ b[k, n].

    Raises:
        ValueError: If b is not 2-D or inner dimensions differ.
    """
    if b.dim() != 2:
        raise ValueError(f"matmul weight must be 2-D, got shape {list(b.shape)}")
    if a.dim() < 1 or a.shape[-1] != b.shape[0]:
        raise ValueError(
            f"matmul inner dimensions differ: {list(a.shape)} @ {list(b.shape)}"
        )
    return torch.matmul(a, b)


def layer_norm(
    x: torch.Tensor,
    gamma: torch.Tensor | None,
    beta: torch.Tensor | None,
    eps: float,
) -> torch.Tensor:
    """Normalize over the last dimension.

    gamma and beta are flattened and must each hold x.shape[-1] values.
    """
    width = x.shape[-1]
    weight = gamma.reshape(width) if gamma is not None else None
    bias = beta.reshape(width) if beta is not None else None
    return F.layer_norm(x, (width,), weight=weight, bias=bias, eps=eps)


def softmax(x: torch.Tensor) -> torch.Tensor:
    """Softmax over the last dimension."""
    return torch.softmax(x, dim=-1)


def gelu(x: torch.Tensor) -> torch.Tensor:
    """GELU, tanh approximation."""
    return F.gelu(x, approximate="tanh")


def fused_gemm_gelu(
    a: torch.Tensor,
    b: torch.Tensor,
    bias: torch.Tensor | None = None,
) -> torch.Tensor:
    """gelu(a @ b + bias)."""
    out = matmul(a, b)
    if bias is not None:
        out = out + bias.reshape(b.shape[1])
    return gelu(out)


def fused_gemm_layer_norm(
    a: torch.Tensor,
    b: torch.Tensor,
    gamma: torch.Tensor | None,
    beta: torch.Tensor | None,
    eps: float,
) -> torch.Tensor:
    """layer_norm(a @ b)."""
    return layer_norm(matmul(a, b), gamma, beta, eps)


def attention(
    query: torch.Tensor,
    key: torch.Tensor,
    value: torch.Tensor,
    scale: float | None = None,
    is_causal: bool = False,
) -> torch.Tensor:
    """Scaled dot-product attention over the last two dimensions.

    Args:
        query: (..., seq_q, head_dim).
        key: (..., seq_k, head_dim).
        value: (..., seq_k, head_dim_v).
        scale: Score scale (None = 1/sqrt(head_dim)).
        is_causal: Mask key positions after each query position.

    Returns:
        (..., seq_q, head_dim_v).
    """
    if query.dim() < 2:
        raise ValueError(
            f"attention query must have at least 2 dims, got {list(query.shape)}"
        )
    if key.shape[-2] != value.shape[-2]:
        raise ValueError(
            f"Key and value sequence lengths must match: "
            f"{key.shape[-2]} != {value.shape[-2]}"
        )
    if scale is None:
        scale = 1.0 / math.sqrt(query.shape[-1]) if query.shape[-1] else 1.0

    squeeze = query.dim() == 2
    if squeeze:
        query, key, value = query.unsqueeze(0), key.unsqueeze(0), value.unsqueeze(0)
    out = F.scaled_dot_product_attention(
        query, key, value, is_causal=is_causal, scale=scale
    )
    return out.squeeze(0) if squeeze else out
