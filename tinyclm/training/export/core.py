# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Inference-only export bundles.

An export strips everything training needs and inference doesn't (optimizer
moments, gradients) and writes:

  model.pt              state_dict of the model weights
  export_metadata.json  architecture, declared output names, weights SHA256
  checksums.sha256      "<sha256>  model.pt"

The serving loader rebuilds the model from the metadata and refuses to load
weights whose digest no longer matches.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import torch

from tinyclm.config.schema import EXPORT_OUTPUTS
from tinyclm.logging.logger import get_logger
from tinyclm.model.transformer import CausalTransformer
from tinyclm.utils.hashing import compute_sha256

logger: logging.Logger = get_logger(__name__)

WEIGHTS_FILE = "model.pt"
METADATA_FILE = "export_metadata.json"
CHECKSUM_FILE = "checksums.sha256"
EXPORT_FORMAT_VERSION = 1
SUPPORTED_OUTPUTS = EXPORT_OUTPUTS


@dataclass(frozen=True)
class ExportResult:
    output_dir: str
    weights_hash: str
    output_names: tuple[str, ...]


def export_model(
    model: CausalTransformer,
    output_dir: Path,
    output_names: Sequence[str],
    extra_metadata: dict[str, object] | None = None,
) -> ExportResult:
    """
    Write an inference bundle for `model` into `output_dir`.

    Args:
        model: Trained model. Weights are copied to CPU before saving.
        output_dir: Bundle directory, created if missing.
        output_names: Outputs the inference session will expose.
        extra_metadata: Merged into export_metadata.json (e.g. final loss).

    Raises:
        ValueError: An output name the inference session can't produce.
    """
    names = tuple(output_names)
    unknown = [name for name in names if name not in SUPPORTED_OUTPUTS]
    if not names or unknown:
        raise ValueError(
            f"Unsupported export outputs {unknown or names}; choose from {SUPPORTED_OUTPUTS}"
        )

    output_dir.mkdir(parents=True, exist_ok=True)

    weights_path = output_dir / WEIGHTS_FILE
    state = {key: value.detach().cpu() for key, value in model.state_dict().items()}
    torch.save(state, weights_path)
    weights_hash = compute_sha256(weights_path)

    metadata: dict[str, object] = {
        "format_version": EXPORT_FORMAT_VERSION,
        "model_config": model.config.to_dict(),
        "output_names": list(names),
        "parameters": model.count_parameters(),
        "weights_sha256": weights_hash,
    }
    if extra_metadata:
        metadata.update(extra_metadata)

    (output_dir / METADATA_FILE).write_text(
        json.dumps(metadata, indent=2, default=str),
        encoding="utf-8",
    )
    (output_dir / CHECKSUM_FILE).write_text(
        f"{weights_hash}  {WEIGHTS_FILE}\n",
        encoding="utf-8",
    )

    logger.info(
        "Export complete",
        extra={
            "output_dir": str(output_dir),
            "outputs": list(names),
            "weights_hash": weights_hash[:16] + "...",
        },
    )
    return ExportResult(output_dir=str(output_dir), weights_hash=weights_hash, output_names=names)
