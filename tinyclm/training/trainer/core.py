# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The trainable-model contract and its torch implementation.

The training loop never touches a torch module directly. It calls:

  trainer.step(inputs, labels) -> float loss   forward + loss + backward
  trainer.optimizer.set_learning_rate(lr)
  trainer.optimizer.apply_update()
  trainer.optimizer.clear_gradients()
  trainer.export(path, output_names)           inference-only bundle

Anything satisfying these protocols can be trained, which is how the loop's
tests run against scripted stubs.
"""

import logging
from pathlib import Path
from typing import Protocol, Sequence

import torch
import torch.nn.functional as F

from tinyclm.logging.logger import get_logger
from tinyclm.model.transformer import CausalTransformer
from tinyclm.training.exceptions import ExternalModelError
from tinyclm.training.export.core import export_model
from tinyclm.training.optimizer.core import OptimizerHandle, create_optimizer

logger: logging.Logger = get_logger(__name__)


class TrainerOptimizer(Protocol):
    def set_learning_rate(self, value: float) -> None: ...

    def apply_update(self) -> None: ...

    def clear_gradients(self) -> None: ...


class Trainer(Protocol):
    @property
    def optimizer(self) -> TrainerOptimizer: ...

    def step(self, inputs: torch.Tensor, labels: torch.Tensor) -> float: ...

    def export(self, path: Path, output_names: Sequence[str]) -> None: ...


class TorchTrainer:
    """
    Trains a CausalTransformer with next-token cross-entropy.

    Labels arrive flattened in row order, matching logits viewed as
    (batch * seq_len, vocab). The loss is the mean over every position.
    """

    def __init__(
        self,
        model: CausalTransformer,
        optimizer: OptimizerHandle,
        device: torch.device,
    ) -> None:
        self.model = model.to(device)
        self.device = device
        self._optimizer = optimizer
        self.last_loss: float | None = None
        self.steps_taken = 0

    @classmethod
    def create(
        cls,
        model: CausalTransformer,
        learning_rate: float,
        device: torch.device,
    ) -> "TorchTrainer":
        """Build the model's AdamW optimizer and wrap both."""
        model = model.to(device)
        handle = OptimizerHandle(create_optimizer(model, learning_rate))
        return cls(model, handle, device)

    @property
    def optimizer(self) -> OptimizerHandle:
        return self._optimizer

    def step(self, inputs: torch.Tensor, labels: torch.Tensor) -> float:
        """
        Forward, loss and backward for one batch. Gradients accumulate until
        the optimizer clears them.

        Raises:
            ExternalModelError: Shape mismatches or other torch failures.
        """
        if labels.dim() != 1 or labels.numel() != inputs.numel():
            raise ExternalModelError(
                f"Labels must be flat with {inputs.numel()} entries, got shape {tuple(labels.shape)}"
            )

        self.model.train()
        try:
            logits = self.model(inputs.to(self.device))
            loss = F.cross_entropy(
                logits.view(-1, logits.size(-1)),
                labels.to(self.device),
            )
            loss.backward()
        except (RuntimeError, ValueError, IndexError) as err:
            raise ExternalModelError(f"Training step failed: {err}") from err

        self.steps_taken += 1
        self.last_loss = float(loss.item())
        return self.last_loss

    def export(self, path: Path, output_names: Sequence[str]) -> None:
        """
        Raises:
            ExternalModelError: Unknown output names or a failed write.
        """
        self.model.eval()
        try:
            export_model(
                self.model,
                Path(path),
                output_names,
                extra_metadata={"steps": self.steps_taken, "final_loss": self.last_loss},
            )
        except (OSError, RuntimeError, ValueError) as err:
            raise ExternalModelError(f"Export to {path} failed: {err}") from err
