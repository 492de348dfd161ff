"""
CrossGPU Transformer Weights

Weight containers for a decoder-style transformer and their on-disk form.
Running the model is left to the caller; this module only describes,
creates and persists the weights that kernels consume.

File format: a torch.save archive of a nested dict holding only
primitives and flat uint8 tensors (raw Tensor bytes), so it loads with
torch.load(weights_only=True).
"""
from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Final, Optional, Union

import numpy as np
import torch

from crossgpu.enums import DType
from crossgpu.exceptions import CrossGPUError, IoError, ModelLoadError, SerializationError
from crossgpu.tensor import Tensor

logger = logging.getLogger(__name__)

FORMAT_NAME: Final[str] = "crossgpu.transformer"
FORMAT_VERSION: Final[int] = 1

PathLike = Union[str, "os.PathLike[str]"]


@dataclass
class TransformerConfig:
    """Transformer hyperparameters.

    Attributes:
        d_model: Hidden size.
        n_heads: Attention heads.
        n_layers: Transformer layers.
        d_ff: Feed-forward width.
        vocab_size: Vocabulary size.
        max_seq_len: Maximum sequence length.
        dropout: Dropout rate (unused at inference).
        layer_norm_eps: Layer norm epsilon.
    """

    d_model: int
    n_heads: int
    n_layers: int
    d_ff: int
    vocab_size: int
    max_seq_len: int
    dropout: float = 0.0
    layer_norm_eps: float = 1e-5

    @classmethod
    def tiny(cls) -> "TransformerConfig":
        """Small preset: 6 layers, d_model 512, 32k vocabulary."""
        return cls(
            d_model=512,
            n_heads=8,
            n_layers=6,
            d_ff=2048,
            vocab_size=32000,
            max_seq_len=512,
            dropout=0.1,
            layer_norm_eps=1e-5,
        )

    @property
    def head_dim(self) -> int:
        """Per-head dimension."""
        return self.d_model // self.n_heads

    def estimate_size(self) -> int:
        """Estimate f32 weight size in bytes.

        Counts the token embedding plus, per layer, the four attention
        projections, the two feed-forward matrices and two layer norms.
        """
        embedding = self.vocab_size * self.d_model * 4
        per_layer = (
            4 * self.d_model * self.d_model
            + 2 * self.d_model * self.d_ff
            + 4 * self.d_model
        ) * 4
        return embedding + per_layer * self.n_layers

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON compatibility."""
        return {
            "d_model": self.d_model,
            "n_heads": self.n_heads,
            "n_layers": self.n_layers,
            "d_ff": self.d_ff,
            "vocab_size": self.vocab_size,
            "max_seq_len": self.max_seq_len,
            "dropout": float(self.dropout),
            "layer_norm_eps": float(self.layer_norm_eps),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransformerConfig":
        """Deserialize from dictionary."""
        return cls(
            d_model=int(data["d_model"]),
            n_heads=int(data["n_heads"]),
            n_layers=int(data["n_layers"]),
            d_ff=int(data["d_ff"]),
            vocab_size=int(data["vocab_size"]),
            max_seq_len=int(data["max_seq_len"]),
            dropout=float(data["dropout"]),
            layer_norm_eps=float(data["layer_norm_eps"]),
        )


@dataclass
class AttentionWeights:
    """Attention projections, each [d_model, d_model]."""

    wq: Tensor
    wk: Tensor
    wv: Tensor
    wo: Tensor


@dataclass
class FeedForwardWeights:
    """Feed-forward weights: w1 [d_model, d_ff], w2 [d_ff, d_model]."""

    w1: Tensor
    w2: Tensor


@dataclass
class LayerNormWeights:
    """Layer norm scale and shift, each [d_model]."""

    gamma: Tensor
    beta: Tensor


@dataclass
class TransformerLayerWeights:
    """One transformer block.

    Attributes:
        attention: Attention projections.
        feed_forward: Feed-forward weights.
        ln1: Layer norm before attention.
        ln2: Layer norm before feed-forward.
    """

    attention: AttentionWeights
    feed_forward: FeedForwardWeights
    ln1: LayerNormWeights
    ln2: LayerNormWeights


@dataclass
class TransformerModel:
    """Complete transformer weights.

    Attributes:
        config: Hyperparameters.
        token_embedding: [vocab_size, d_model].
        position_embedding: [max_seq_len, d_model].
        layers: Blocks in execution order.
        final_layer_norm: Norm applied after the last block.
    """

    config: TransformerConfig
    token_embedding: Tensor
    position_embedding: Tensor
    layers: list[TransformerLayerWeights] = field(default_factory=list)
    final_layer_norm: Optional[LayerNormWeights] = None

    @classmethod
    def initialize(
        cls,
        config: TransformerConfig,
        seed: Optional[int] = None,
        std: float = 0.02,
    ) -> "TransformerModel":
        """Create a model with normally distributed weights.

        Matrices are drawn from N(0, std); layer norms start at
        gamma = 1, beta = 0.

        Args:
            config: Hyperparameters.
            seed: RNG seed for reproducible weights.
            std: Standard deviation of matrix entries.

        Returns:
            New TransformerModel with F32 weights.
        """
        rng = np.random.default_rng(seed)
        d, f = config.d_model, config.d_ff

        def matrix(rows: int, cols: int) -> Tensor:
            values = rng.normal(0.0, std, size=(rows, cols)).astype(np.float32)
            return Tensor.from_numpy(values)

        def norm() -> LayerNormWeights:
            return LayerNormWeights(
                gamma=Tensor.from_numpy(np.ones(d, dtype=np.float32)),
                beta=Tensor.create([d], DType.F32),
            )

        layers = [
            TransformerLayerWeights(
                attention=AttentionWeights(
                    wq=matrix(d, d), wk=matrix(d, d), wv=matrix(d, d), wo=matrix(d, d)
                ),
                feed_forward=FeedForwardWeights(w1=matrix(d, f), w2=matrix(f, d)),
                ln1=norm(),
                ln2=norm(),
            )
            for _ in range(config.n_layers)
        ]
        return cls(
            config=config,
            token_embedding=matrix(config.vocab_size, d),
            position_embedding=matrix(config.max_seq_len, d),
            layers=layers,
            final_layer_norm=norm(),
        )

    def num_parameters(self) -> int:
        """Count logical weight elements."""
        total = self.token_embedding.numel() + self.position_embedding.numel()
        for layer in self.layers:
            attn, ff = layer.attention, layer.feed_forward
            total += sum(t.numel() for t in (attn.wq, attn.wk, attn.wv, attn.wo))
            total += ff.w1.numel() + ff.w2.numel()
            total += sum(_norm_numel(n) for n in (layer.ln1, layer.ln2))
        if self.final_layer_norm is not None:
            total += _norm_numel(self.final_layer_norm)
        return total

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_state(self) -> dict[str, Any]:
        """Encode as a nested dict of primitives and uint8 tensors."""
        return {
            "format": FORMAT_NAME,
            "version": FORMAT_VERSION,
            "config": self.config.to_dict(),
            "token_embedding": _encode_tensor(self.token_embedding),
            "position_embedding": _encode_tensor(self.position_embedding),
            "layers": [_encode_layer(layer) for layer in self.layers],
            "final_layer_norm": (
                _encode_norm(self.final_layer_norm)
                if self.final_layer_norm is not None else None
            ),
        }

    @classmethod
    def from_state(cls, state: Any) -> "TransformerModel":
        """Decode the dict produced by to_state.

        Raises:
            ModelLoadError: If the structure is malformed.
        """
        try:
            if not isinstance(state, dict) or state.get("format") != FORMAT_NAME:
                raise ModelLoadError("Not a CrossGPU transformer archive")
            version = state.get("version")
            if version != FORMAT_VERSION:
                raise ModelLoadError(f"Unsupported archive version {version!r}")
            final = state["final_layer_norm"]
            return cls(
                config=TransformerConfig.from_dict(state["config"]),
                token_embedding=_decode_tensor(state["token_embedding"]),
                position_embedding=_decode_tensor(state["position_embedding"]),
                layers=[_decode_layer(layer) for layer in state["layers"]],
                final_layer_norm=_decode_norm(final) if final is not None else None,
            )
        except ModelLoadError:
            raise
        except (CrossGPUError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise ModelLoadError(f"Malformed model archive: {e}") from e

    def save(self, path: PathLike) -> None:
        """Write the model to a file.

        Args:
            path: Destination file.

        Raises:
            SerializationError: If encoding fails.
            IoError: If the file cannot be written.
        """
        buffer = io.BytesIO()
        try:
            torch.save(self.to_state(), buffer)
        except Exception as e:
            raise SerializationError(
                f"Failed to serialize model: {e}", path=os.fspath(path)
            ) from e

        try:
            with open(path, "wb") as f:
                f.write(buffer.getvalue())
        except OSError as e:
            raise IoError(e, path=os.fspath(path)) from e
        logger.info("Saved model (%d parameters) to %s", self.num_parameters(), path)

    @classmethod
    def load(cls, path: PathLike) -> "TransformerModel":
        """Read a model written by save().

        Args:
            path: Source file.

        Returns:
            Decoded TransformerModel.

        Raises:
            IoError: If the file cannot be read.
            ModelLoadError: If the content is not a valid archive.
        """
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise IoError(e, path=os.fspath(path)) from e

        try:
            state = torch.load(io.BytesIO(raw), weights_only=True)
        except Exception as e:
            raise ModelLoadError(
                f"Failed to deserialize model: {e}", path=os.fspath(path)
            ) from e

        model = cls.from_state(state)
        logger.info("Loaded model (%d layers) from %s", len(model.layers), path)
        return model


def _norm_numel(norm: LayerNormWeights) -> int:
    return norm.gamma.numel() + norm.beta.numel()


def _encode_tensor(tensor: Tensor) -> dict[str, Any]:
    raw = np.frombuffer(bytes(tensor.data), dtype=np.uint8).copy()
    return {
        "shape": list(tensor.shape),
        "dtype": tensor.dtype.value,
        "data": torch.from_numpy(raw),
    }


def _decode_tensor(record: dict[str, Any]) -> Tensor:
    data = record["data"]
    if not isinstance(data, torch.Tensor) or data.dtype != torch.uint8:
        raise ModelLoadError("Tensor payload must be a uint8 tensor")
    raw = data.contiguous().numpy().tobytes()
    return Tensor.from_bytes([int(d) for d in record["shape"]], DType(record["dtype"]), raw)


def _encode_norm(norm: LayerNormWeights) -> dict[str, Any]:
    return {"gamma": _encode_tensor(norm.gamma), "beta": _encode_tensor(norm.beta)}


def _decode_norm(record: dict[str, Any]) -> LayerNormWeights:
    return LayerNormWeights(
        gamma=_decode_tensor(record["gamma"]), beta=_decode_tensor(record["beta"])
    )


def _encode_layer(layer: TransformerLayerWeights) -> dict[str, Any]:
    attn, ff = layer.attention, layer.feed_forward
    return {
        "attention": {
            "wq": _encode_tensor(attn.wq),
            "wk": _encode_tensor(attn.wk),
            "wv": _encode_tensor(attn.wv),
            "wo": _encode_tensor(attn.wo),
        },
        "feed_forward": {"w1": _encode_tensor(ff.w1), "w2": _encode_tensor(ff.w2)},
        "ln1": _encode_norm(layer.ln1),
        "ln2": _encode_norm(layer.ln2),
    }


def _decode_layer(record: dict[str, Any]) -> TransformerLayerWeights:
    attn, ff = record["attention"], record["feed_forward"]
    return TransformerLayerWeights(
        attention=AttentionWeights(
            wq=_decode_tensor(attn["wq"]),
            wk=_decode_tensor(attn["wk"]),
            wv=_decode_tensor(attn["wv"]),
            wo=_decode_tensor(attn["wo"]),
        ),
        feed_forward=FeedForwardWeights(
            w1=_decode_tensor(ff["w1"]), w2=_decode_tensor(ff["w2"])
        ),
        ln1=_decode_norm(record["ln1"]),
        ln2=_decode_norm(record["ln2"]),
    )
