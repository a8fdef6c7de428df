# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for tinyclm.

Usage:
    tinyclm corpus --config configs/clm.yaml
    tinyclm train --config configs/clm.yaml --seed 123
    tinyclm generate --config configs/clm.yaml --max-new-tokens 100
    tinyclm info

--config, --log-level, --dry-run and --seed are shared by every subcommand
through a parent parser.
"""

import argparse
import sys
from typing import Optional, Sequence

from tinyclm.cli.commands import (
    handle_corpus,
    handle_generate,
    handle_info,
    handle_train,
)
from tinyclm.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (overrides global.log_level).",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Validate inputs and report what would run, without running it.",
    )
    parent.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the random seed (takes precedence over config).",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    commands = [
        ("corpus", "Encode text files into a uint16 token corpus.", handle_corpus),
        ("train", "Train a causal LM on a token corpus and export it.", handle_train),
        ("generate", "Greedy-decode text from an exported model.", handle_generate),
        ("info", "Display environment and config info.", handle_info),
    ]
    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)

    generate_parser = subparsers.choices["generate"]
    generate_parser.add_argument(
        "--prompt",
        type=str,
        default=None,
        help="Seed text (overrides generate.seed_text).",
    )
    generate_parser.add_argument(
        "--max-new-tokens",
        type=int,
        default=None,
        dest="max_new_tokens",
        help="Tokens to generate (overrides generate.max_new_tokens).",
    )

    train_parser = subparsers.choices["train"]
    train_parser.add_argument(
        "--no-sample",
        action="store_true",
        default=False,
        dest="no_sample",
        help="Skip sampling from the exported model after training.",
    )


def build_parser() -> argparse.ArgumentParser:
    parent = _build_global_parser()
    root_parser = argparse.ArgumentParser(
        prog="tinyclm",
        description="tinyclm: train a small causal LM from a token corpus and sample from it.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)
    return root_parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Parse arguments, dispatch to the subcommand handler, exit with its code."""
    root_parser = build_parser()
    args = root_parser.parse_args(argv)

    if getattr(args, "func", None) is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
