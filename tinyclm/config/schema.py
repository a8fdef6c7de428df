# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Typed configuration sections for tinyclm.

Each section is a frozen pydantic model. Frozen because the constants a run
consumes (batch size, sequence length, iteration count, learning rate, decode
step count) are fixed at startup and must not drift mid-run.

Every model uses:
  - frozen=True: no mutation after construction
  - extra="forbid": typos in YAML fail loudly
  - validate_default=True: defaults are type-checked too
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_VALID_DEVICES = ("auto", "cpu", "cuda")

# Named outputs an export bundle can expose.
EXPORT_OUTPUTS = ("probs", "logits")


def _check_device(value: str) -> str:
    if value not in _VALID_DEVICES and not value.startswith("cuda:"):
        raise ValueError(f"device must be one of {_VALID_DEVICES} or 'cuda:N', got '{value}'")
    return value


def _check_output_name(value: str) -> str:
    if value not in EXPORT_OUTPUTS:
        raise ValueError(f"output '{value}' is not one of {EXPORT_OUTPUTS}")
    return value


class GlobalConfig(BaseModel):
    """Cross-cutting settings: reproducibility seed and log verbosity."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(default="tinyclm", description="Human-readable run identifier")
    seed: int = Field(
        default=42,
        ge=0,
        description="Seed for weight init, batch sampling and python/torch RNGs",
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )


class ModelConfig(BaseModel):
    """
    Architecture of the decoder-only transformer that gets trained.

    vocab_size is capped at 65536 because corpus records are unsigned 16-bit.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    vocab_size: int = Field(
        default=50257,
        ge=2,
        le=65536,
        description="Vocabulary size, must match the tokenizer and fit in 16 bits",
    )
    n_layers: int = Field(default=4, ge=1, le=96, description="Number of transformer blocks")
    hidden_size: int = Field(default=256, ge=8, description="Model hidden dimension")
    n_heads: int = Field(default=4, ge=1, description="Number of attention heads")
    head_dim: int = Field(default=64, ge=2, description="Dimension per attention head")
    context_length: int = Field(
        default=256,
        ge=2,
        description="Longest sequence the model attends over",
    )
    dropout: float = Field(default=0.0, ge=0.0, le=1.0, description="Dropout probability")
    norm_eps: float = Field(default=1e-6, gt=0.0, description="RMSNorm epsilon")
    rope_theta: float = Field(default=10000.0, gt=0.0, description="RoPE base frequency")
    init_std: float = Field(default=0.02, gt=0.0, description="Weight init std")

    @field_validator("head_dim")
    @classmethod
    def _head_dim_is_even(cls, value: int) -> int:
        if value % 2 != 0:
            raise ValueError("head_dim must be even for rotary embeddings")
        return value


class TrainConfig(BaseModel):
    """Training run constants. Defaults match the reference mini-CLM run."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    batch_size: int = Field(default=16, ge=1, description="Windows per batch")
    sequence_length: int = Field(default=256, ge=1, description="Tokens per window")
    max_steps: int = Field(default=5000, ge=1, description="Total training iterations")
    learning_rate: float = Field(
        default=7e-5,
        gt=0.0,
        description="Constant learning rate, set once before the first step",
    )
    corpus_path: str = Field(
        default="dataset.bin",
        description="Flat little-endian uint16 token file",
    )
    output_directory: str = Field(
        default="trained-clm",
        description="Where the inference-only export bundle is written",
    )
    output_names: list[str] = Field(
        default_factory=lambda: ["probs"],
        description="Named outputs the exported graph exposes",
    )
    log_interval: int = Field(default=10, ge=1, description="Log progress every N iterations")
    device: str = Field(default="auto", description="'auto', 'cpu', 'cuda' or 'cuda:N'")

    @field_validator("device")
    @classmethod
    def _valid_device(cls, value: str) -> str:
        return _check_device(value)

    @field_validator("output_names")
    @classmethod
    def _known_outputs(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("output_names must name at least one output")
        return [_check_output_name(name) for name in value]


class GenerateConfig(BaseModel):
    """Greedy decoding settings."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    export_directory: str = Field(
        default="trained-clm",
        description="Export bundle produced by training",
    )
    tokenizer_path: str = Field(
        default="tokenizer.json",
        description="HuggingFace tokenizers JSON file",
    )
    seed_text: str = Field(default="<|endoftext|>", description="Text the continuation starts from")
    max_new_tokens: int = Field(default=50, ge=0, description="Tokens appended to the seed")
    output_name: str = Field(default="probs", description="Probability output to decode from")
    device: str = Field(default="auto", description="'auto', 'cpu', 'cuda' or 'cuda:N'")

    @field_validator("device")
    @classmethod
    def _valid_device(cls, value: str) -> str:
        return _check_device(value)

    @field_validator("output_name")
    @classmethod
    def _known_output(cls, value: str) -> str:
        return _check_output_name(value)


class CorpusConfig(BaseModel):
    """Inputs for building a binary token corpus out of plain-text files."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    source_files: list[str] = Field(
        default_factory=list,
        description="Text files to encode, concatenated in the listed order",
    )
    tokenizer_path: str = Field(default="tokenizer.json", description="Tokenizer JSON file")
    output_path: str = Field(default="dataset.bin", description="Corpus file to write")
    separator_token: Optional[str] = Field(
        default="<|endoftext|>",
        description="Special token inserted after each document, None to disable",
    )


class TinyCLMConfig(BaseModel):
    """
    Top-level container. Only `global` is required; commands check for the
    sections they need.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    model: Optional[ModelConfig] = Field(default=None)
    train: Optional[TrainConfig] = Field(default=None)
    generate: Optional[GenerateConfig] = Field(default=None)
    corpus: Optional[CorpusConfig] = Field(default=None)
