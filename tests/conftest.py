# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for tinyclm tests.

Corpus files are tiny and written per test; nothing touches the real
dataset.bin or any downloaded tokenizer.
"""

import struct
import textwrap
from pathlib import Path
from typing import Callable

import pytest


def write_corpus(path: Path, token_ids: list[int]) -> Path:
    """Write `token_ids` as little-endian uint16 records."""
    path.write_bytes(struct.pack(f"<{len(token_ids)}H", *token_ids))
    return path


@pytest.fixture()
def corpus_file(tmp_path: Path) -> Callable[[list[int]], Path]:
    """Factory: corpus_file([1, 2, 3]) -> path to a fresh corpus file."""
    counter = {"n": 0}

    def _make(token_ids: list[int]) -> Path:
        counter["n"] += 1
        return write_corpus(tmp_path / f"corpus_{counter['n']}.bin", token_ids)

    return _make


@pytest.fixture()
def sequential_corpus(corpus_file: Callable[[list[int]], Path]) -> Path:
    """Corpus whose token at index i is i, so windows are easy to check."""
    return corpus_file(list(range(200)))


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """Smallest config that passes schema validation."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "tinyclm-test"
          seed: 42
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """Valid YAML that fails schema validation (missing config_version)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "broken"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file
