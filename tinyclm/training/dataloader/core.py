# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Random-window minibatch sampling from a TokenCorpus.

Each batch row is an independent draw: a start offset picked uniformly from
[0, token_count - sequence_length - 1), an input window at `start` and a
label window at `start + 1`. The two reads overlap by sequence_length - 1
tokens; that overlap is the next-token shift, not a bug.

Labels are flattened row-major (row 0 first), which is the order the
trainer's cross-entropy sees after `logits.view(-1, vocab)`.

The torch.Generator is supplied by the caller, so a seeded generator gives
the same batches every run.
"""

from dataclasses import dataclass

import torch

from tinyclm.config.exceptions import ConfigError
from tinyclm.training.corpus.core import TokenCorpus
from tinyclm.training.exceptions import CorpusTooSmallError


@dataclass(frozen=True)
class Batch:
    """
    One training batch.

    inputs: int64 tensor of shape (batch_size, sequence_length).
    labels: int64 tensor of shape (batch_size * sequence_length,).
    starts: token offsets each row was drawn from.
    """

    inputs: torch.Tensor
    labels: torch.Tensor
    starts: tuple[int, ...]

    @property
    def batch_size(self) -> int:
        return self.inputs.shape[0]

    @property
    def sequence_length(self) -> int:
        return self.inputs.shape[1]


def start_offset_bound(corpus: TokenCorpus, sequence_length: int) -> int:
    """
    Exclusive upper bound for window start offsets.

    Raises:
        CorpusTooSmallError: If no start offset leaves room for the label shift.
    """
    bound = corpus.token_count - sequence_length - 1
    if bound <= 0:
        raise CorpusTooSmallError(
            f"Corpus {corpus.path} has {corpus.token_count} tokens, too few for "
            f"windows of {sequence_length} plus a one-token label shift"
        )
    return bound


def check_window_fits(corpus: TokenCorpus, batch_size: int, sequence_length: int) -> None:
    """
    Validate sampling parameters before a run starts.

    Raises:
        ConfigError: Non-positive batch size or sequence length.
        CorpusTooSmallError: Corpus smaller than one window plus its shift.
    """
    if batch_size < 1:
        raise ConfigError(f"batch_size must be >= 1, got {batch_size}")
    if sequence_length < 1:
        raise ConfigError(f"sequence_length must be >= 1, got {sequence_length}")
    start_offset_bound(corpus, sequence_length)


def sample_batch(
    corpus: TokenCorpus,
    batch_size: int,
    sequence_length: int,
    rng: torch.Generator,
) -> Batch:
    """
    Draw `batch_size` (input, label) window pairs at random offsets.

    Args:
        corpus: Open corpus to read from.
        batch_size: Rows in the batch.
        sequence_length: Tokens per row.
        rng: Caller-owned generator; consumed once per row, in row order.

    Returns:
        Batch with inputs (batch_size, sequence_length) and flat labels.

    Raises:
        ConfigError: Bad sizes, or the corpus is too small (CorpusTooSmallError).
        CorpusIOError: A window read came back short.
    """
    check_window_fits(corpus, batch_size, sequence_length)
    bound = start_offset_bound(corpus, sequence_length)

    starts: list[int] = []
    input_rows: list[tuple[int, ...]] = []
    label_rows: list[tuple[int, ...]] = []

    for _ in range(batch_size):
        start = int(torch.randint(0, bound, (1,), generator=rng).item())
        starts.append(start)
        input_rows.append(corpus.read_window(start, sequence_length))
        label_rows.append(corpus.read_window(start + 1, sequence_length))

    inputs = torch.tensor(input_rows, dtype=torch.long)
    labels = torch.tensor(label_rows, dtype=torch.long).reshape(batch_size * sequence_length)

    return Batch(inputs=inputs, labels=labels, starts=tuple(starts))
