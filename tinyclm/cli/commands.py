# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the tinyclm CLI.

Each handler loads the config, bootstraps the runtime, does its work and
maps failures onto exit codes:

  ConfigError (bad config, malformed or too-small corpus)  -> CONFIG_ERROR
  missing files, unreadable corpus                          -> VALIDATION_ERROR
  model/tokenizer failures, anything else                   -> RUNTIME_ERROR

Diagnostics go through the structured logger on stderr. Generated text is
the only thing written to stdout.
"""

import argparse
import logging
import sys
from collections.abc import Iterable
from pathlib import Path

from tinyclm.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, USER_ERROR, VALIDATION_ERROR
from tinyclm.config.exceptions import ConfigError
from tinyclm.config.loader import load_config, with_seed
from tinyclm.config.schema import GenerateConfig, TinyCLMConfig
from tinyclm.logging.logger import configure_package_logging, get_logger
from tinyclm.runtime.bootstrap import bootstrap, resolve_device, set_deterministic_seed
from tinyclm.serving.streaming.core import StreamChunk
from tinyclm.training.exceptions import CorpusIOError


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, TinyCLMConfig | None, logging.Logger]:
    """
    Shared setup: load config, apply --seed, bootstrap.

    Returns (exit_code, config, logger); a non-SUCCESS code means the caller
    should return it immediately.
    """
    logger = get_logger(f"tinyclm.cli.{command_name}", log_level=args.log_level or "INFO")

    config = None
    if args.config is not None:
        try:
            config = load_config(Path(args.config))
            if args.seed is not None:
                config = with_seed(config, args.seed)
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    if config is not None:
        bootstrap(config.global_config, log_level_override=args.log_level)
    else:
        configure_package_logging(args.log_level or "INFO")
        if args.seed is not None:
            set_deterministic_seed(args.seed)
        logger.debug("No config provided, running with defaults", extra={"command": command_name})

    return SUCCESS, config, logger


def _write_stream(chunks: Iterable[StreamChunk]) -> int:
    """Write each chunk's text to stdout as it arrives; returns the count."""
    count = 0
    for chunk in chunks:
        sys.stdout.write(chunk.token_text)
        sys.stdout.flush()
        count += 1
    sys.stdout.write("\n")
    sys.stdout.flush()
    return count


def _run_generation(
    gen_cfg: GenerateConfig,
    bundle_dir: Path,
    logger: logging.Logger,
    seed_text: str | None = None,
    max_new_tokens: int | None = None,
) -> None:
    from tinyclm.serving.generation.core import generate_stream
    from tinyclm.serving.loader.core import load_inference_session
    from tinyclm.tokenizer.artifacts.core import TokenizerCodec

    tokenizer = TokenizerCodec.from_file(Path(gen_cfg.tokenizer_path))
    session = load_inference_session(bundle_dir, resolve_device(gen_cfg.device))

    text = gen_cfg.seed_text if seed_text is None else seed_text
    steps = gen_cfg.max_new_tokens if max_new_tokens is None else max_new_tokens

    emitted = _write_stream(
        generate_stream(session, tokenizer, text, steps, output_name=gen_cfg.output_name)
    )
    logger.info("Generation complete", extra={"new_tokens": emitted})


def handle_corpus(args: argparse.Namespace) -> int:
    """Encode the configured text files into a token corpus."""
    exit_code, config, logger = _load_and_bootstrap(args, "corpus")
    if exit_code != SUCCESS:
        return exit_code

    if config is None or config.corpus is None:
        logger.error("A config with a corpus section is required", extra={"command": "corpus"})
        return CONFIG_ERROR

    corpus_cfg = config.corpus
    if args.dry_run:
        logger.info(
            "Dry run: would build corpus",
            extra={"sources": len(corpus_cfg.source_files), "output": corpus_cfg.output_path},
        )
        return SUCCESS

    try:
        from tinyclm.data.dataset.builder import build_corpus
        from tinyclm.tokenizer.artifacts.core import TokenizerCodec

        tokenizer = TokenizerCodec.from_file(Path(corpus_cfg.tokenizer_path))
        result = build_corpus(corpus_cfg, tokenizer)
        logger.info(
            "Corpus command finished",
            extra={"output": result.output_path, "tokens": result.total_tokens},
        )
        return SUCCESS
    except ConfigError as err:
        logger.error("Corpus build failed", extra={"error": str(err)})
        return CONFIG_ERROR
    except FileNotFoundError as err:
        logger.error("Corpus build failed: missing files", extra={"error": str(err)})
        return VALIDATION_ERROR
    except Exception as err:
        logger.error("Corpus build failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_train(args: argparse.Namespace) -> int:
    """Train from the corpus, export on convergence, then optionally sample."""
    exit_code, config, logger = _load_and_bootstrap(args, "train")
    if exit_code != SUCCESS:
        return exit_code

    if config is None or config.model is None or config.train is None:
        logger.error(
            "Model and train config sections are required",
            extra={"command": "train"},
        )
        return CONFIG_ERROR

    train_cfg = config.train
    if args.dry_run:
        logger.info(
            "Dry run: would start training",
            extra={
                "corpus": train_cfg.corpus_path,
                "max_steps": train_cfg.max_steps,
                "batch_size": train_cfg.batch_size,
                "sequence_length": train_cfg.sequence_length,
                "learning_rate": train_cfg.learning_rate,
            },
        )
        return SUCCESS

    try:
        from tinyclm.training.engine.core import TrainingStatus, run_training

        result = run_training(config)

        if result.status is TrainingStatus.ABORTED:
            logger.warning(
                "Training diverged; no model was exported",
                extra={"iterations": result.iterations, "loss": str(result.final_loss)},
            )
            return SUCCESS

        logger.info(
            "Training complete",
            extra={
                "iterations": result.iterations,
                "final_loss": result.final_loss,
                "parameters": result.parameters,
                "export_dir": result.export_dir,
            },
        )

        if config.generate is not None and not args.no_sample and result.export_dir is not None:
            _run_generation(config.generate, Path(result.export_dir), logger)
        return SUCCESS

    except ConfigError as err:
        logger.error("Training failed: configuration", extra={"error": str(err)})
        return CONFIG_ERROR
    except (FileNotFoundError, CorpusIOError) as err:
        logger.error("Training failed: missing or unreadable input", extra={"error": str(err)})
        return VALIDATION_ERROR
    except Exception as err:
        logger.error("Training failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_generate(args: argparse.Namespace) -> int:
    """Stream a greedy continuation from an exported model."""
    exit_code, config, logger = _load_and_bootstrap(args, "generate")
    if exit_code != SUCCESS:
        return exit_code

    if config is None or config.generate is None:
        logger.error("A config with a generate section is required", extra={"command": "generate"})
        return CONFIG_ERROR

    gen_cfg = config.generate
    if args.max_new_tokens is not None and args.max_new_tokens < 0:
        logger.error("--max-new-tokens must be >= 0", extra={"value": args.max_new_tokens})
        return USER_ERROR

    if args.dry_run:
        logger.info(
            "Dry run: would generate text",
            extra={
                "export_directory": gen_cfg.export_directory,
                "max_new_tokens": (
                    gen_cfg.max_new_tokens if args.max_new_tokens is None else args.max_new_tokens
                ),
            },
        )
        return SUCCESS

    try:
        _run_generation(
            gen_cfg,
            Path(gen_cfg.export_directory),
            logger,
            seed_text=args.prompt,
            max_new_tokens=args.max_new_tokens,
        )
        return SUCCESS
    except FileNotFoundError as err:
        logger.error("Generate failed: missing files", extra={"error": str(err)})
        return VALIDATION_ERROR
    except Exception as err:
        logger.error("Generate failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_info(args: argparse.Namespace) -> int:
    """Log the environment and which config sections are present."""
    exit_code, config, logger = _load_and_bootstrap(args, "info")
    if exit_code != SUCCESS:
        return exit_code

    from tinyclm.runtime.environment import get_system_info

    info = get_system_info()
    sections = []
    if config is not None:
        sections = [
            name
            for name in ("model", "train", "generate", "corpus")
            if getattr(config, name) is not None
        ]
    logger.info(
        "Environment",
        extra={
            "python_version": info.python_version,
            "torch_version": info.torch_version,
            "cuda_available": info.cuda_available,
            "platform": info.platform,
            "architecture": info.architecture,
            "config_sections": sections,
        },
    )
    return SUCCESS
