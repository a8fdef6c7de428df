# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for greedy decoding against stub models and a stub codec.

The stub model logs each run() call into the same event list the token
callback writes to, so tests can check that token N is emitted before the
model is asked for token N+1.
"""

import math

import pytest
import torch

from tinyclm.serving.generation.core import (
    generate,
    generate_from_ids,
    generate_stream,
    select_next_token,
)
from tinyclm.serving.streaming.core import StreamChunk
from tinyclm.training.exceptions import ExternalModelError

VOCAB = 10


class _StubCodec:
    """Text is space-separated ids; 't<n>' decodes id n."""

    def encode(self, text: str) -> list[int]:
        return [int(part) for part in text.split()]

    def decode(self, ids: list[int]) -> str:
        return "".join(f"t{i}" for i in ids)


class _PeakedModel:
    """Always puts almost all probability on one token."""

    def __init__(self, peak: int, events: list[str] | None = None) -> None:
        self.peak = peak
        self.events = events if events is not None else []
        self.inputs: list[list[int]] = []

    def run(self, input_ids: torch.Tensor) -> dict[str, torch.Tensor]:
        self.events.append("run")
        self.inputs.append(input_ids[0].tolist())
        seq_len = input_ids.shape[1]
        probs = torch.full((1, seq_len, VOCAB), 0.01)
        probs[..., self.peak] = 0.91
        return {"probs": probs}


class _EchoModel:
    """Predicts (last token + 1) % VOCAB; only the last position is peaked."""

    def run(self, input_ids: torch.Tensor) -> dict[str, torch.Tensor]:
        seq_len = input_ids.shape[1]
        probs = torch.zeros(1, seq_len, VOCAB)
        probs[0, :-1, 0] = 1.0
        probs[0, -1, (int(input_ids[0, -1]) + 1) % VOCAB] = 1.0
        return {"probs": probs}


class _FixedModel:
    def __init__(self, row: list[float], name: str = "probs") -> None:
        self.row = torch.tensor(row)
        self.name = name

    def run(self, input_ids: torch.Tensor) -> dict[str, torch.Tensor]:
        return {self.name: self.row.expand(1, input_ids.shape[1], -1)}


class TestSelectNextToken:
    def test_picks_argmax(self) -> None:
        assert select_next_token(torch.tensor([0.1, 0.7, 0.2])) == 1

    def test_tie_goes_to_lowest_index(self) -> None:
        assert select_next_token(torch.tensor([0.1, 0.4, 0.1, 0.4])) == 1

    def test_uses_last_position_of_sequence(self) -> None:
        probs = torch.tensor([[[0.9, 0.1], [0.2, 0.8]]])
        assert select_next_token(probs) == 1

    def test_nan_rejected(self) -> None:
        with pytest.raises(ExternalModelError):
            select_next_token(torch.tensor([0.5, math.nan]))

    def test_empty_rejected(self) -> None:
        with pytest.raises(ExternalModelError):
            select_next_token(torch.empty(0))


class TestGenerate:
    def test_peaked_model_repeats_peak(self) -> None:
        tokens = generate(_PeakedModel(7), _StubCodec(), "1 2 3", max_new_tokens=5)
        assert tokens == [1, 2, 3, 7, 7, 7, 7, 7]

    def test_length_is_seed_plus_steps(self) -> None:
        tokens = generate(_EchoModel(), _StubCodec(), "4", max_new_tokens=12)
        assert len(tokens) == 13
        assert tokens[:4] == [4, 5, 6, 7]

    def test_each_token_emitted_before_next_run(self) -> None:
        events: list[str] = []
        model = _PeakedModel(7, events)
        generate(
            model,
            _StubCodec(),
            "1 2 3",
            max_new_tokens=5,
            on_token=lambda chunk: events.append(chunk.token_text),
        )
        assert events == ["run", "t7"] * 5

    def test_model_sees_growing_sequence(self) -> None:
        model = _PeakedModel(4)
        generate(model, _StubCodec(), "1 2", max_new_tokens=3)
        assert model.inputs == [[1, 2], [1, 2, 4], [1, 2, 4, 4]]

    def test_zero_tokens_returns_seed(self) -> None:
        model = _PeakedModel(7)
        assert generate(model, _StubCodec(), "1 2 3", max_new_tokens=0) == [1, 2, 3]
        assert model.inputs == []

    def test_negative_steps_rejected(self) -> None:
        with pytest.raises(ValueError):
            generate(_PeakedModel(7), _StubCodec(), "1", max_new_tokens=-1)

    def test_empty_seed_rejected(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            generate(_PeakedModel(7), _StubCodec(), "", max_new_tokens=3)

    def test_deterministic(self) -> None:
        first = generate(_EchoModel(), _StubCodec(), "2 9", max_new_tokens=8)
        second = generate(_EchoModel(), _StubCodec(), "2 9", max_new_tokens=8)
        assert first == second

    def test_missing_output_name(self) -> None:
        model = _FixedModel([0.5, 0.5], name="logits")
        with pytest.raises(ExternalModelError, match="probs"):
            generate(model, _StubCodec(), "1", max_new_tokens=1)

    def test_custom_output_name(self) -> None:
        model = _FixedModel([0.1, 2.0, 0.3], name="logits")
        tokens = generate(model, _StubCodec(), "0", max_new_tokens=2, output_name="logits")
        assert tokens == [0, 1, 1]

    def test_non_finite_model_output_fails(self) -> None:
        model = _FixedModel([math.nan, 0.5])
        with pytest.raises(ExternalModelError):
            generate(model, _StubCodec(), "1", max_new_tokens=1)


class TestStreaming:
    def test_stream_chunks(self) -> None:
        chunks = list(generate_stream(_PeakedModel(3), _StubCodec(), "1", max_new_tokens=3))
        assert [c.token_id for c in chunks] == [3, 3, 3]
        assert [c.position for c in chunks] == [0, 1, 2]
        assert [c.done for c in chunks] == [False, False, True]
        assert all(isinstance(c, StreamChunk) for c in chunks)

    def test_stream_is_lazy(self) -> None:
        model = _PeakedModel(3)
        stream = generate_stream(model, _StubCodec(), "1", max_new_tokens=4)
        next(stream)
        assert len(model.inputs) == 1

    def test_generate_from_ids(self) -> None:
        received: list[StreamChunk] = []
        tokens = generate_from_ids(
            _EchoModel(), _StubCodec(), [5], max_new_tokens=3, on_token=received.append
        )
        assert tokens == [5, 6, 7, 8]
        assert [c.token_text for c in received] == ["t6", "t7", "t8"]
