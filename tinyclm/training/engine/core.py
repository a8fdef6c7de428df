# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The training loop.

Each iteration, in this order:
  1. Sample one batch of random windows
  2. trainer.step(inputs, labels) -> loss
  3. Report (iteration, total, loss) to the progress observer
  4. Non-finite loss: stop now, no update, no export (ABORTED)
  5. optimizer.apply_update(), then optimizer.clear_gradients()

After the last iteration the run is CONVERGED and the trainer exports an
inference-only bundle. A diverged run is abandoned rather than continued on
corrupted gradients. Corpus, sampling and collaborator errors propagate and
end the run; nothing is retried.

The trainer, corpus and generator are passed in explicitly and owned by the
loop for the duration of the run.
"""

import enum
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import torch

from tinyclm.config.schema import TinyCLMConfig
from tinyclm.logging.logger import get_logger
from tinyclm.model.config import TransformerModelConfig
from tinyclm.model.transformer import CausalTransformer
from tinyclm.runtime.bootstrap import resolve_device
from tinyclm.training.corpus.core import TokenCorpus
from tinyclm.training.dataloader.core import check_window_fits, sample_batch
from tinyclm.training.exceptions import ExternalModelError
from tinyclm.training.metrics.core import (
    LoggingProgressObserver,
    ProgressObserver,
    notify_progress,
)
from tinyclm.training.trainer.core import TorchTrainer, Trainer

logger: logging.Logger = get_logger(__name__)


class TrainingStatus(enum.Enum):
    RUNNING = "running"
    CONVERGED = "converged"
    ABORTED = "aborted"


@dataclass
class TrainingState:
    """
    Mutable run state, updated once per iteration.

    iteration counts completed step() calls, including a diverged one.
    """

    total_iterations: int
    iteration: int = 0
    loss: float = math.nan
    learning_rate: Optional[float] = None
    status: TrainingStatus = TrainingStatus.RUNNING
    export_path: Optional[Path] = None

    @property
    def converged(self) -> bool:
        return self.status is TrainingStatus.CONVERGED

    @property
    def aborted(self) -> bool:
        return self.status is TrainingStatus.ABORTED


def _as_float(loss: object) -> float:
    try:
        return float(loss)  # type: ignore[arg-type]
    except (TypeError, ValueError, RuntimeError) as err:
        raise ExternalModelError(f"Trainer returned a non-scalar loss: {loss!r}") from err


def run_training_loop(
    trainer: Trainer,
    corpus: TokenCorpus,
    total_iterations: int,
    batch_size: int,
    sequence_length: int,
    rng: torch.Generator,
    observer: Optional[ProgressObserver] = None,
    learning_rate: Optional[float] = None,
    export_path: Optional[Path] = None,
    output_names: Sequence[str] = ("probs",),
) -> TrainingState:
    """
    Drive `trainer` for `total_iterations` iterations over random batches.

    Args:
        trainer: Trainable model with an `optimizer` handle.
        corpus: Open token corpus.
        total_iterations: Iterations to run when the loss stays finite.
        batch_size: Windows per batch.
        sequence_length: Tokens per window.
        rng: Generator consumed by the batch sampler.
        observer: Optional progress callback; its failures are ignored.
        learning_rate: When set, applied once before the first iteration.
        export_path: Where to export after convergence; None skips export.
        output_names: Outputs the exported graph exposes.

    Returns:
        Final TrainingState, CONVERGED or ABORTED.

    Raises:
        ConfigError: Bad sizes or a corpus too small for one window, raised
            before any step is taken.
        CorpusIOError: A window read failed.
        ExternalModelError: The trainer or optimizer failed.
    """
    if total_iterations < 0:
        raise ValueError(f"total_iterations must be >= 0, got {total_iterations}")
    check_window_fits(corpus, batch_size, sequence_length)

    state = TrainingState(total_iterations=total_iterations, learning_rate=learning_rate)
    if learning_rate is not None:
        trainer.optimizer.set_learning_rate(learning_rate)

    logger.info(
        "Training loop started",
        extra={
            "total_iterations": total_iterations,
            "batch_size": batch_size,
            "sequence_length": sequence_length,
            "corpus_tokens": corpus.token_count,
        },
    )

    optimizer = trainer.optimizer
    for iteration in range(total_iterations):
        batch = sample_batch(corpus, batch_size, sequence_length, rng)
        loss = _as_float(trainer.step(batch.inputs, batch.labels))

        state.iteration = iteration + 1
        state.loss = loss
        notify_progress(observer, iteration, total_iterations, loss)

        if not math.isfinite(loss):
            state.status = TrainingStatus.ABORTED
            logger.warning(
                "Loss diverged, abandoning training without export",
                extra={"iteration": iteration, "loss": str(loss)},
            )
            return state

        optimizer.apply_update()
        optimizer.clear_gradients()

    state.status = TrainingStatus.CONVERGED

    if export_path is not None:
        trainer.export(export_path, list(output_names))
        state.export_path = export_path

    logger.info(
        "Training loop finished",
        extra={
            "iterations": state.iteration,
            "final_loss": state.loss,
            "export_path": str(export_path) if export_path is not None else None,
        },
    )
    return state


@dataclass(frozen=True)
class TrainingResult:
    """Summary of a config-driven training run."""

    status: TrainingStatus
    iterations: int
    final_loss: float
    parameters: int
    export_dir: Optional[str]


def run_training(config: TinyCLMConfig) -> TrainingResult:
    """
    Train a fresh model as described by `config`.

    Opens the corpus, builds the transformer and its AdamW trainer on the
    configured device, seeds a dedicated sampling generator from the global
    seed, runs the loop and exports to `train.output_directory` when the run
    converges.

    Raises:
        RuntimeError: `model` or `train` section missing.
    """
    train_cfg = config.train
    model_cfg = config.model
    if train_cfg is None or model_cfg is None:
        raise RuntimeError("Model and train config sections are required for training")

    seed = config.global_config.seed
    device = resolve_device(train_cfg.device)

    model_config = TransformerModelConfig.from_schema(model_cfg, seed=seed)
    if train_cfg.sequence_length > model_config.max_seq_len:
        raise RuntimeError(
            f"train.sequence_length ({train_cfg.sequence_length}) exceeds "
            f"model.context_length ({model_config.max_seq_len})"
        )

    with TokenCorpus.open(Path(train_cfg.corpus_path)) as corpus:
        check_window_fits(corpus, train_cfg.batch_size, train_cfg.sequence_length)

        model = CausalTransformer(model_config)
        trainer = TorchTrainer.create(model, train_cfg.learning_rate, device)
        logger.info(
            "Model created",
            extra={
                "parameters": model.count_parameters(),
                "layers": model_config.n_layers,
                "device": str(device),
            },
        )

        rng = torch.Generator()
        rng.manual_seed(seed)

        observer = LoggingProgressObserver(
            log_interval=train_cfg.log_interval,
            tokens_per_iteration=train_cfg.batch_size * train_cfg.sequence_length,
        )

        state = run_training_loop(
            trainer,
            corpus,
            total_iterations=train_cfg.max_steps,
            batch_size=train_cfg.batch_size,
            sequence_length=train_cfg.sequence_length,
            rng=rng,
            observer=observer,
            learning_rate=train_cfg.learning_rate,
            export_path=Path(train_cfg.output_directory),
            output_names=train_cfg.output_names,
        )

    return TrainingResult(
        status=state.status,
        iterations=state.iteration,
        final_loss=state.loss,
        parameters=model.count_parameters(),
        export_dir=str(state.export_path) if state.export_path is not None else None,
    )
