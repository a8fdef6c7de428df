# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
AdamW factory and the optimizer handle the training loop drives.

The loop only ever sees three operations: set the learning rate once, apply
an update, clear gradients. OptimizerHandle exposes exactly that over a
torch optimizer. Weight decay goes to matrices only; norms and biases are
left undecayed.
"""

import torch
import torch.nn as nn

from tinyclm.training.exceptions import ExternalModelError


def _decay_param_groups(
    model: nn.Module,
    weight_decay: float,
) -> list[dict[str, object]]:
    decay: list[torch.Tensor] = []
    no_decay: list[torch.Tensor] = []
    for param in model.parameters():
        if not param.requires_grad:
            continue
        (decay if param.dim() >= 2 else no_decay).append(param)
    return [
        {"params": decay, "weight_decay": weight_decay},
        {"params": no_decay, "weight_decay": 0.0},
    ]


def create_optimizer(
    model: nn.Module,
    learning_rate: float,
    weight_decay: float = 0.01,
    betas: tuple[float, float] = (0.9, 0.999),
) -> torch.optim.AdamW:
    return torch.optim.AdamW(
        _decay_param_groups(model, weight_decay),
        lr=learning_rate,
        betas=betas,
    )


class OptimizerHandle:
    """
    The optimizer operations available to the training loop.

    Failures inside torch are re-raised as ExternalModelError so the loop
    sees one error type for every collaborator.
    """

    def __init__(self, optimizer: torch.optim.Optimizer) -> None:
        self._optimizer = optimizer

    @property
    def learning_rate(self) -> float:
        return float(self._optimizer.param_groups[0]["lr"])

    def set_learning_rate(self, value: float) -> None:
        if not value > 0.0:
            raise ValueError(f"Learning rate must be > 0, got {value}")
        for group in self._optimizer.param_groups:
            group["lr"] = value

    def apply_update(self) -> None:
        try:
            self._optimizer.step()
        except RuntimeError as err:
            raise ExternalModelError(f"Optimizer update failed: {err}") from err

    def clear_gradients(self) -> None:
        self._optimizer.zero_grad(set_to_none=True)
