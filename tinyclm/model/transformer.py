# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Causal transformer language model.

tokens -> embedding -> N x [x + attn(norm(x)); x + ffn(norm(x))] -> norm -> logits

The LM head shares its weight with the embedding. Initialization draws from a
private torch.Generator seeded by the config, so two models built from the
same config start bit-identical whatever the global RNG state is.
"""

import torch
import torch.nn as nn
import torch.nn.functional as F

from tinyclm.model.config import TransformerModelConfig, swiglu_hidden_size
from tinyclm.model.layers import RMSNorm, SwiGLU, apply_rope, rope_tables


class CausalSelfAttention(nn.Module):
    def __init__(self, config: TransformerModelConfig) -> None:
        super().__init__()
        self.n_heads = config.n_heads
        self.head_dim = config.head_dim
        inner = config.n_heads * config.head_dim

        self.qkv = nn.Linear(config.dim, 3 * inner, bias=False)
        self.proj = nn.Linear(inner, config.dim, bias=False)
        self.dropout = config.dropout

    def forward(self, x: torch.Tensor, cos: torch.Tensor, sin: torch.Tensor) -> torch.Tensor:
        batch_size, seq_len, _ = x.shape

        # (batch, seq, 3, heads, head_dim) -> three (batch, heads, seq, head_dim)
        qkv = self.qkv(x).view(batch_size, seq_len, 3, self.n_heads, self.head_dim)
        q, k, v = qkv.permute(2, 0, 3, 1, 4).unbind(0)

        q = apply_rope(q, cos, sin)
        k = apply_rope(k, cos, sin)

        out = F.scaled_dot_product_attention(
            q,
            k,
            v,
            dropout_p=self.dropout if self.training else 0.0,
            is_causal=True,
        )
        out = out.transpose(1, 2).contiguous().view(batch_size, seq_len, -1)
        return self.proj(out)


class TransformerBlock(nn.Module):
    """Pre-norm block: attention then SwiGLU, each with a residual."""

    def __init__(self, config: TransformerModelConfig) -> None:
        super().__init__()
        self.attention_norm = RMSNorm(config.dim, eps=config.norm_eps)
        self.attention = CausalSelfAttention(config)
        self.ffn_norm = RMSNorm(config.dim, eps=config.norm_eps)
        self.feed_forward = SwiGLU(config.dim, swiglu_hidden_size(config.dim), config.dropout)

    def forward(self, x: torch.Tensor, cos: torch.Tensor, sin: torch.Tensor) -> torch.Tensor:
        x = x + self.attention(self.attention_norm(x), cos, sin)
        return x + self.feed_forward(self.ffn_norm(x))


class CausalTransformer(nn.Module):
    """
    Decoder-only language model.

    forward() maps token ids (batch, seq_len) to logits
    (batch, seq_len, vocab_size). seq_len may not exceed config.max_seq_len.
    """

    def __init__(self, config: TransformerModelConfig) -> None:
        super().__init__()
        self.config = config

        self.tok_embeddings = nn.Embedding(config.vocab_size, config.dim)
        self.layers = nn.ModuleList(TransformerBlock(config) for _ in range(config.n_layers))
        self.norm = RMSNorm(config.dim, eps=config.norm_eps)
        self.output = nn.Linear(config.dim, config.vocab_size, bias=False)

        cos, sin = rope_tables(config.head_dim, config.max_seq_len, config.rope_theta)
        self.register_buffer("rope_cos", cos, persistent=False)
        self.register_buffer("rope_sin", sin, persistent=False)

        self._init_weights()
        self.output.weight = self.tok_embeddings.weight

    @torch.no_grad()
    def _init_weights(self) -> None:
        generator = torch.Generator()
        generator.manual_seed(self.config.seed)
        for name, param in self.named_parameters():
            if param.dim() >= 2:
                # Sample on CPU so the draw doesn't depend on the device.
                param.copy_(torch.empty(param.shape).normal_(0.0, self.config.init_std, generator=generator))
            elif name.endswith("weight"):
                param.fill_(1.0)
            else:
                param.zero_()

    def forward(self, tokens: torch.Tensor) -> torch.Tensor:
        seq_len = tokens.shape[1]
        if seq_len > self.config.max_seq_len:
            raise ValueError(
                f"Sequence of {seq_len} tokens exceeds the context window of "
                f"{self.config.max_seq_len}"
            )

        cos = self.rope_cos[:seq_len]
        sin = self.rope_sin[:seq_len]

        h = self.tok_embeddings(tokens)
        for layer in self.layers:
            h = layer(h, cos, sin)
        return self.output(self.norm(h))

    def count_parameters(self) -> int:
        return sum(p.numel() for p in self.parameters() if p.requires_grad)
