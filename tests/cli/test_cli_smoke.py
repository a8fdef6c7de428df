# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI smoke tests.

The entrypoint runs in a subprocess the way a user would invoke it, which
catches broken imports and argument wiring that unit tests miss.
"""

import json
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _run_cli(*args: str, cwd: Path = PROJECT_ROOT) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "tinyclm.cli.main", *args],
        capture_output=True,
        text=True,
        timeout=120,
        cwd=cwd,
    )


def _write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestHelpTexts:
    @pytest.mark.parametrize("subcommand", ["corpus", "train", "generate", "info"])
    def test_subcommand_help_exits_zero(self, subcommand: str) -> None:
        result = _run_cli(subcommand, "--help")
        assert result.returncode == 0
        assert "usage" in result.stdout.lower()

    def test_no_subcommand_is_user_error(self) -> None:
        assert _run_cli().returncode == 1


class TestSubcommandExecution:
    def test_info_runs_without_config(self) -> None:
        result = _run_cli("info")
        assert result.returncode == 0
        assert result.stdout == ""
        lines = [json.loads(line) for line in result.stderr.splitlines() if line.startswith("{")]
        assert any(line["msg"] == "Environment" for line in lines)

    def test_generate_without_config_is_config_error(self) -> None:
        assert _run_cli("generate").returncode == 2

    def test_train_without_config_is_config_error(self) -> None:
        assert _run_cli("train").returncode == 2

    def test_invalid_config_is_config_error(self, invalid_config_file: Path) -> None:
        assert _run_cli("info", "--config", str(invalid_config_file)).returncode == 2

    def test_train_dry_run(self, tmp_path: Path) -> None:
        config = _write_config(
            tmp_path,
            """\
            global:
              config_version: "1.0.0"
            model:
              config_version: "1.0.0"
            train:
              config_version: "1.0.0"
            """,
        )
        assert _run_cli("train", "--config", str(config), "--dry-run").returncode == 0

    def test_train_missing_corpus_is_validation_error(self, tmp_path: Path) -> None:
        config = _write_config(
            tmp_path,
            f"""\
            global:
              config_version: "1.0.0"
            model:
              config_version: "1.0.0"
              vocab_size: 32
              n_layers: 1
              hidden_size: 16
              n_heads: 2
              head_dim: 8
              context_length: 8
            train:
              config_version: "1.0.0"
              sequence_length: 8
              batch_size: 2
              max_steps: 1
              device: "cpu"
              corpus_path: "{tmp_path / 'absent.bin'}"
            """,
        )
        assert _run_cli("train", "--config", str(config)).returncode == 4

    def test_train_end_to_end(self, tmp_path: Path) -> None:
        corpus = tmp_path / "dataset.bin"
        corpus.write_bytes(b"".join(i.to_bytes(2, "little") for i in list(range(32)) * 4))
        out_dir = tmp_path / "trained-clm"
        config = _write_config(
            tmp_path,
            f"""\
            global:
              config_version: "1.0.0"
              seed: 3
            model:
              config_version: "1.0.0"
              vocab_size: 32
              n_layers: 1
              hidden_size: 16
              n_heads: 2
              head_dim: 8
              context_length: 8
            train:
              config_version: "1.0.0"
              sequence_length: 8
              batch_size: 2
              max_steps: 3
              learning_rate: 0.001
              device: "cpu"
              corpus_path: "{corpus}"
              output_directory: "{out_dir}"
            """,
        )
        result = _run_cli("train", "--config", str(config))
        assert result.returncode == 0, result.stderr
        assert (out_dir / "model.pt").is_file()
        assert (out_dir / "export_metadata.json").is_file()
