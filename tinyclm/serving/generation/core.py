# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Greedy autoregressive decoding.

Starting from the encoded seed text, each step:

  1. runs the inference model on the whole sequence so far
  2. takes the probability row for the final position
  3. appends the highest-probability token id
  4. decodes just that id and emits it before the next model call

The loop runs exactly `max_new_tokens` steps; there is no end-of-text stop,
so the result always has len(seed) + max_new_tokens ids. Greedy selection has
no randomness, so a deterministic model gives identical output every run.

Tie-breaking: among exactly equal maxima the lowest token id wins
(torch.argmax returns the first maximal index). A probability row containing
NaN or infinity is rejected instead of guessed through.
"""

import logging
from collections.abc import Callable, Generator, Sequence
from typing import Optional

import torch

from tinyclm.logging.logger import get_logger
from tinyclm.serving.loader.core import InferenceModel
from tinyclm.serving.streaming.core import StreamChunk, TokenStreamer
from tinyclm.tokenizer.artifacts.core import TextCodec
from tinyclm.training.exceptions import ExternalModelError

logger: logging.Logger = get_logger(__name__)


def select_next_token(probs: torch.Tensor) -> int:
    """
    Greedy pick over a probability (or score) tensor.

    A 1-D tensor is one vocabulary row. Higher-rank tensors are treated as
    (..., seq_len, vocab) and the last position of the last row is used.

    Raises:
        ExternalModelError: Empty or non-finite scores.
    """
    if probs.dim() == 0 or probs.size(-1) == 0:
        raise ExternalModelError(f"Model returned no vocabulary scores: shape {tuple(probs.shape)}")
    if probs.dim() > 1:
        probs = probs.reshape(-1, probs.size(-1))[-1]
    if not torch.isfinite(probs).all():
        raise ExternalModelError("Model returned non-finite probabilities for the next token")
    return int(torch.argmax(probs).item())


def _next_token_probs(
    model: InferenceModel,
    token_ids: list[int],
    output_name: str,
) -> torch.Tensor:
    outputs = model.run(torch.tensor([token_ids], dtype=torch.long))
    if output_name not in outputs:
        raise ExternalModelError(
            f"Inference outputs {sorted(outputs)} do not include '{output_name}'"
        )
    return outputs[output_name]


def generate_stream_from_ids(
    model: InferenceModel,
    tokenizer: TextCodec,
    seed_ids: Sequence[int],
    max_new_tokens: int,
    output_name: str = "probs",
    sequence: Optional[list[int]] = None,
) -> Generator[StreamChunk, None, None]:
    """
    Yield one StreamChunk per generated token.

    Args:
        model: Inference model returning a named probability tensor.
        tokenizer: Used to decode each new token on its own.
        seed_ids: Starting token sequence; must not be empty.
        max_new_tokens: Exact number of tokens to append.
        output_name: Which model output holds the probabilities.
        sequence: Optional list to grow in place. When given it must start
            out equal to `seed_ids`; callers use it to read the full
            sequence after the stream ends.

    Raises:
        ValueError: Empty seed or negative max_new_tokens.
        ExternalModelError: The model or tokenizer failed.
    """
    if max_new_tokens < 0:
        raise ValueError(f"max_new_tokens must be >= 0, got {max_new_tokens}")
    if not seed_ids:
        raise ValueError("Seed sequence is empty; there is nothing to condition on")

    tokens = sequence if sequence is not None else list(seed_ids)
    streamer = TokenStreamer()

    for step in range(max_new_tokens):
        probs = _next_token_probs(model, tokens, output_name)
        next_token = select_next_token(probs)
        tokens.append(next_token)
        yield streamer.emit(
            tokenizer.decode([next_token]),
            next_token,
            done=step == max_new_tokens - 1,
        )

    logger.debug(
        "Generation finished",
        extra={
            "seed_tokens": len(seed_ids),
            "new_tokens": max_new_tokens,
            "elapsed_ms": round(streamer.elapsed_ms, 2),
        },
    )


def generate_stream(
    model: InferenceModel,
    tokenizer: TextCodec,
    seed_text: str,
    max_new_tokens: int,
    output_name: str = "probs",
) -> Generator[StreamChunk, None, None]:
    """Encode `seed_text` and stream its greedy continuation."""
    seed_ids = tokenizer.encode(seed_text)
    yield from generate_stream_from_ids(model, tokenizer, seed_ids, max_new_tokens, output_name)


def generate_from_ids(
    model: InferenceModel,
    tokenizer: TextCodec,
    seed_ids: Sequence[int],
    max_new_tokens: int,
    on_token: Optional[Callable[[StreamChunk], None]] = None,
    output_name: str = "probs",
) -> list[int]:
    """
    Run the decode loop to completion and return seed + generated ids.

    `on_token` receives each chunk as soon as it is decoded, before the next
    model call.
    """
    tokens = list(seed_ids)
    for chunk in generate_stream_from_ids(
        model, tokenizer, seed_ids, max_new_tokens, output_name, sequence=tokens
    ):
        if on_token is not None:
            on_token(chunk)
    return tokens


def generate(
    model: InferenceModel,
    tokenizer: TextCodec,
    seed_text: str,
    max_new_tokens: int,
    on_token: Optional[Callable[[StreamChunk], None]] = None,
    output_name: str = "probs",
) -> list[int]:
    """
    Greedy-decode `max_new_tokens` tokens after `seed_text`.

    Returns:
        The full token sequence, len(encode(seed_text)) + max_new_tokens ids.
    """
    seed_ids = tokenizer.encode(seed_text)
    logger.info(
        "Generation started",
        extra={"seed_tokens": len(seed_ids), "max_new_tokens": max_new_tokens},
    )
    return generate_from_ids(model, tokenizer, seed_ids, max_new_tokens, on_token, output_name)
