# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Plain architecture config carried by the torch modules and by export bundles.

Validation lives in the pydantic ModelConfig; this object only holds values
and round-trips through JSON so an export can rebuild the exact model.
"""

from typing import Any

from tinyclm.config.schema import ModelConfig


def swiglu_hidden_size(dim: int, multiple_of: int = 32) -> int:
    """(2/3) * 4 * dim rounded up to a multiple of `multiple_of`."""
    hidden = int(2 * (4 * dim) / 3)
    return multiple_of * ((hidden + multiple_of - 1) // multiple_of)


class TransformerModelConfig:
    """
    Args:
        vocab_size: Size of the token vocabulary.
        dim: Hidden dimension.
        n_layers: Number of transformer blocks.
        n_heads: Number of attention heads.
        head_dim: Dimension per head (even, for RoPE).
        max_seq_len: Context window; RoPE tables are built for this length.
        dropout: Dropout in attention and feedforward.
        norm_eps: RMSNorm epsilon.
        rope_theta: RoPE base frequency.
        init_std: Std of the normal weight init.
        seed: Seed for deterministic weight init.
    """

    __slots__ = (
        "vocab_size",
        "dim",
        "n_layers",
        "n_heads",
        "head_dim",
        "max_seq_len",
        "dropout",
        "norm_eps",
        "rope_theta",
        "init_std",
        "seed",
    )

    def __init__(
        self,
        vocab_size: int,
        dim: int,
        n_layers: int,
        n_heads: int,
        head_dim: int,
        max_seq_len: int = 256,
        dropout: float = 0.0,
        norm_eps: float = 1e-6,
        rope_theta: float = 10000.0,
        init_std: float = 0.02,
        seed: int = 42,
    ) -> None:
        self.vocab_size = vocab_size
        self.dim = dim
        self.n_layers = n_layers
        self.n_heads = n_heads
        self.head_dim = head_dim
        self.max_seq_len = max_seq_len
        self.dropout = dropout
        self.norm_eps = norm_eps
        self.rope_theta = rope_theta
        self.init_std = init_std
        self.seed = seed

    @classmethod
    def from_schema(cls, model_cfg: ModelConfig, seed: int) -> "TransformerModelConfig":
        return cls(
            vocab_size=model_cfg.vocab_size,
            dim=model_cfg.hidden_size,
            n_layers=model_cfg.n_layers,
            n_heads=model_cfg.n_heads,
            head_dim=model_cfg.head_dim,
            max_seq_len=model_cfg.context_length,
            dropout=model_cfg.dropout,
            norm_eps=model_cfg.norm_eps,
            rope_theta=model_cfg.rope_theta,
            init_std=model_cfg.init_std,
            seed=seed,
        )

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.__slots__}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransformerModelConfig":
        return cls(**{name: data[name] for name in cls.__slots__ if name in data})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransformerModelConfig):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"TransformerModelConfig({fields})"
