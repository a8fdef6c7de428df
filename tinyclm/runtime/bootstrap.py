# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
One-time process setup for every CLI command.

  1. Check the interpreter version
  2. Seed python, hash and torch RNGs
  3. Re-level the package loggers from the global config
  4. Log a startup line with the environment snapshot

Batch sampling does not rely on the global seeds: the training loop gets its
own torch.Generator seeded from the same value, so sampling order is
reproducible even if something else consumes the global torch RNG.
"""

import os
import random
from pathlib import Path
from typing import Optional

import torch

from tinyclm.config.schema import GlobalConfig
from tinyclm.logging.logger import configure_package_logging, get_logger
from tinyclm.runtime.environment import check_minimum_python, get_system_info


def set_deterministic_seed(seed: int) -> None:
    """Seed `random`, PYTHONHASHSEED and torch (CPU and every CUDA device)."""
    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)
    torch.manual_seed(seed)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)
        torch.backends.cudnn.deterministic = True
        torch.backends.cudnn.benchmark = False


def resolve_device(device_str: str) -> torch.device:
    """'auto' picks CUDA when present, otherwise CPU."""
    if device_str == "auto":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    return torch.device(device_str)


def bootstrap(config: GlobalConfig, log_level_override: Optional[str] = None) -> None:
    """
    Put the process into a known state before any corpus or model is touched.

    Args:
        config: Validated global configuration.
        log_level_override: CLI `--log-level`, wins over the config value.
    """
    check_minimum_python()
    set_deterministic_seed(config.seed)

    log_level = log_level_override or config.log_level
    log_file = Path(config.log_file) if config.log_file is not None else None
    configure_package_logging(log_level, log_file)

    logger = get_logger("tinyclm.runtime", log_level=log_level, log_file=log_file)
    info = get_system_info()
    logger.info(
        "Bootstrap complete",
        extra={
            "project": config.project_name,
            "seed": config.seed,
            "python_version": info.python_version,
            "torch_version": info.torch_version,
            "cuda_available": info.cuda_available,
            "platform": info.platform,
        },
    )
