# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
YAML config loading for tinyclm.

read file -> yaml.safe_load -> pydantic validation -> frozen TinyCLMConfig.
Any failure stops the run before a corpus is opened or a model is built.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from tinyclm.config.exceptions import ConfigLoadError, ConfigValidationError
from tinyclm.config.schema import TinyCLMConfig


def _read_yaml_mapping(config_path: Path) -> dict[str, Any]:
    """
    Parse a YAML file that must contain a top-level mapping.

    Raises:
        ConfigLoadError: Missing file, unreadable file, bad YAML, or a
            document that is not a mapping.
    """
    if not config_path.is_file():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping, got {type(parsed).__name__}"
        )
    return parsed


def load_config(config_path: Path) -> TinyCLMConfig:
    """
    Load and validate a config file.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations.
    """
    raw_data = _read_yaml_mapping(config_path)

    try:
        return TinyCLMConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Config validation failed for {config_path}:\n{err}"
        ) from err


def with_seed(config: TinyCLMConfig, seed: int) -> TinyCLMConfig:
    """
    Return a copy of `config` with the global seed replaced.

    The config is frozen, so a CLI `--seed` override produces a new object
    rather than mutating the loaded one.
    """
    if seed < 0:
        raise ConfigValidationError(f"Seed must be >= 0, got {seed}")
    global_config = config.global_config.model_copy(update={"seed": seed})
    return config.model_copy(update={"global_config": global_config})
