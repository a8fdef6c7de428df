# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Loading an export bundle as an inference model.

The bundle written by training/export is checked before use: metadata must
be present, the weights digest must match the recorded SHA256, and the
weights must fit the recorded architecture. A bundle that fails any check is
refused outright.

InferenceSession.run(input_ids) returns named output tensors for the batch:

  probs   softmax over the vocabulary, (batch, seq_len, vocab)
  logits  raw scores, same shape

Only the outputs the bundle was exported with are available.
"""

import json
import logging
from pathlib import Path
from typing import Protocol, Sequence

import torch

from tinyclm.logging.logger import get_logger
from tinyclm.model.config import TransformerModelConfig
from tinyclm.model.transformer import CausalTransformer
from tinyclm.training.exceptions import ExternalModelError
from tinyclm.training.export.core import METADATA_FILE, WEIGHTS_FILE
from tinyclm.utils.hashing import compute_sha256, verify_checksum

logger: logging.Logger = get_logger(__name__)


class InferenceModel(Protocol):
    def run(self, input_ids: torch.Tensor) -> dict[str, torch.Tensor]: ...


class InferenceSession:
    """
    Eval-mode model plus the outputs it was exported with.

    Inputs longer than the context window are cropped to their most recent
    `max_seq_len` tokens, so the last position always sees the newest text.
    """

    def __init__(
        self,
        model: CausalTransformer,
        output_names: Sequence[str],
        device: torch.device,
    ) -> None:
        self.model = model.to(device).eval()
        self.output_names = tuple(output_names)
        self.device = device

    @property
    def context_length(self) -> int:
        return self.model.config.max_seq_len

    @torch.no_grad()
    def run(self, input_ids: torch.Tensor) -> dict[str, torch.Tensor]:
        """
        Raises:
            ExternalModelError: Wrong input rank/dtype or a model failure.
        """
        if input_ids.dim() != 2:
            raise ExternalModelError(
                f"Expected input of shape (batch, seq_len), got {tuple(input_ids.shape)}"
            )
        if input_ids.size(1) > self.context_length:
            input_ids = input_ids[:, -self.context_length :]

        try:
            logits = self.model(input_ids.to(device=self.device, dtype=torch.long)).float()
        except (RuntimeError, ValueError, IndexError) as err:
            raise ExternalModelError(f"Inference failed: {err}") from err

        outputs: dict[str, torch.Tensor] = {}
        if "logits" in self.output_names:
            outputs["logits"] = logits.cpu()
        if "probs" in self.output_names:
            outputs["probs"] = torch.softmax(logits, dim=-1).cpu()
        return outputs


def _read_metadata(bundle_dir: Path) -> dict[str, object]:
    meta_path = bundle_dir / METADATA_FILE
    if not meta_path.is_file():
        raise FileNotFoundError(f"{METADATA_FILE} not found in {bundle_dir}")
    return json.loads(meta_path.read_text(encoding="utf-8"))


def _verify_weights(weights_path: Path, expected_hash: object) -> None:
    if not isinstance(expected_hash, str):
        raise ExternalModelError(f"Export metadata has no weights checksum for {weights_path}")
    if not verify_checksum(weights_path, expected_hash):
        raise ExternalModelError(
            f"Weights checksum mismatch for {weights_path}. "
            f"Expected: {expected_hash[:16]}... Got: {compute_sha256(weights_path)[:16]}..."
        )
    logger.debug("Weights checksum verified", extra={"hash": expected_hash[:16] + "..."})


def _model_config(metadata: dict[str, object], bundle_dir: Path) -> TransformerModelConfig:
    try:
        return TransformerModelConfig.from_dict(metadata["model_config"])  # type: ignore[arg-type]
    except (KeyError, TypeError, AttributeError) as err:
        raise ExternalModelError(
            f"Export metadata in {bundle_dir} has no usable model_config: {err}"
        ) from err


def load_inference_session(bundle_dir: Path, device: torch.device) -> InferenceSession:
    """
    Rebuild the exported model and wrap it for inference.

    Raises:
        FileNotFoundError: Bundle directory, weights or metadata missing.
        ExternalModelError: Checksum mismatch, missing model_config, or
            weights that don't fit the recorded architecture.
    """
    if not bundle_dir.is_dir():
        raise FileNotFoundError(f"Export bundle not found: {bundle_dir}")

    weights_path = bundle_dir / WEIGHTS_FILE
    if not weights_path.is_file():
        raise FileNotFoundError(f"{WEIGHTS_FILE} not found in {bundle_dir}")

    metadata = _read_metadata(bundle_dir)
    _verify_weights(weights_path, metadata.get("weights_sha256"))

    model_config = _model_config(metadata, bundle_dir)
    model = CausalTransformer(model_config)
    state = torch.load(weights_path, map_location="cpu", weights_only=True)
    try:
        model.load_state_dict(state)
    except RuntimeError as err:
        raise ExternalModelError(f"Weights in {bundle_dir} don't match its config: {err}") from err

    output_names = metadata.get("output_names") or ["probs"]
    logger.info(
        "Inference model loaded",
        extra={
            "bundle": str(bundle_dir),
            "parameters": model.count_parameters(),
            "outputs": output_names,
            "device": str(device),
        },
    )
    return InferenceSession(model, output_names, device)  # type: ignore[arg-type]
