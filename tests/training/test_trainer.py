# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for TorchTrainer, the optimizer handle and export bundles, using a
model small enough to train on CPU in milliseconds.
"""

import json
import math
from pathlib import Path

import pytest
import torch

from tinyclm.model.config import TransformerModelConfig
from tinyclm.model.transformer import CausalTransformer
from tinyclm.serving.loader.core import load_inference_session
from tinyclm.training.exceptions import ExternalModelError
from tinyclm.training.export.core import CHECKSUM_FILE, METADATA_FILE, WEIGHTS_FILE, export_model
from tinyclm.training.trainer.core import TorchTrainer

CPU = torch.device("cpu")


def _tiny_model() -> CausalTransformer:
    return CausalTransformer(
        TransformerModelConfig(
            vocab_size=32, dim=16, n_layers=1, n_heads=2, head_dim=8, max_seq_len=16, seed=0
        )
    )


def _batch(batch_size: int = 2, seq_len: int = 8) -> tuple[torch.Tensor, torch.Tensor]:
    generator = torch.Generator()
    generator.manual_seed(0)
    inputs = torch.randint(0, 32, (batch_size, seq_len), generator=generator)
    labels = torch.randint(0, 32, (batch_size * seq_len,), generator=generator)
    return inputs, labels


class TestTorchTrainer:
    def test_step_returns_finite_loss(self) -> None:
        trainer = TorchTrainer.create(_tiny_model(), learning_rate=1e-3, device=CPU)
        loss = trainer.step(*_batch())
        assert math.isfinite(loss)
        # Untrained model over 32 tokens sits near ln(32).
        assert loss == pytest.approx(math.log(32), abs=1.0)
        assert trainer.steps_taken == 1

    def test_update_changes_weights(self) -> None:
        trainer = TorchTrainer.create(_tiny_model(), learning_rate=1e-2, device=CPU)
        before = trainer.model.tok_embeddings.weight.detach().clone()
        trainer.step(*_batch())
        trainer.optimizer.apply_update()
        trainer.optimizer.clear_gradients()
        assert not torch.equal(before, trainer.model.tok_embeddings.weight)
        assert all(p.grad is None for p in trainer.model.parameters())

    def test_repeated_steps_reduce_loss(self) -> None:
        trainer = TorchTrainer.create(_tiny_model(), learning_rate=1e-2, device=CPU)
        inputs, labels = _batch()
        first = trainer.step(inputs, labels)
        for _ in range(20):
            trainer.optimizer.apply_update()
            trainer.optimizer.clear_gradients()
            last = trainer.step(inputs, labels)
        assert last < first

    def test_misshapen_labels_rejected(self) -> None:
        trainer = TorchTrainer.create(_tiny_model(), learning_rate=1e-3, device=CPU)
        inputs, labels = _batch()
        with pytest.raises(ExternalModelError):
            trainer.step(inputs, labels.view(2, 8))
        with pytest.raises(ExternalModelError):
            trainer.step(inputs, labels[:-1])

    def test_set_learning_rate(self) -> None:
        trainer = TorchTrainer.create(_tiny_model(), learning_rate=1e-3, device=CPU)
        trainer.optimizer.set_learning_rate(7e-5)
        assert trainer.optimizer.learning_rate == pytest.approx(7e-5)
        with pytest.raises(ValueError):
            trainer.optimizer.set_learning_rate(0.0)


class TestExport:
    def test_bundle_files_written(self, tmp_path: Path) -> None:
        result = export_model(_tiny_model(), tmp_path / "bundle", ["probs"])
        bundle = tmp_path / "bundle"
        assert (bundle / WEIGHTS_FILE).is_file()
        metadata = json.loads((bundle / METADATA_FILE).read_text(encoding="utf-8"))
        assert metadata["output_names"] == ["probs"]
        assert metadata["weights_sha256"] == result.weights_hash
        assert result.weights_hash in (bundle / CHECKSUM_FILE).read_text(encoding="utf-8")

    def test_unknown_output_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            export_model(_tiny_model(), tmp_path / "bundle", ["hidden_states"])
        with pytest.raises(ValueError):
            export_model(_tiny_model(), tmp_path / "bundle", [])

    def test_export_with_unknown_output_is_external_error(self, tmp_path: Path) -> None:
        trainer = TorchTrainer.create(_tiny_model(), learning_rate=1e-3, device=CPU)
        with pytest.raises(ExternalModelError, match="prob"):
            trainer.export(tmp_path / "trained", ["prob"])

    def test_trainer_export_loads_for_inference(self, tmp_path: Path) -> None:
        trainer = TorchTrainer.create(_tiny_model(), learning_rate=1e-3, device=CPU)
        trainer.step(*_batch())
        trainer.optimizer.apply_update()
        trainer.export(tmp_path / "trained", ["probs"])

        metadata = json.loads((tmp_path / "trained" / METADATA_FILE).read_text(encoding="utf-8"))
        assert metadata["steps"] == 1

        session = load_inference_session(tmp_path / "trained", CPU)
        outputs = session.run(torch.tensor([[1, 2, 3]]))
        assert set(outputs) == {"probs"}
        probs = outputs["probs"]
        assert probs.shape == (1, 3, 32)
        assert torch.allclose(probs.sum(dim=-1), torch.ones(1, 3), atol=1e-5)

        trainer.model.eval()
        with torch.no_grad():
            expected = torch.softmax(trainer.model(torch.tensor([[1, 2, 3]])), dim=-1)
        assert torch.allclose(probs, expected, atol=1e-6)
