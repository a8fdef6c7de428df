# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Corpus builder: plain-text files -> flat uint16 token file.

Each source file is read as UTF-8, encoded with the tokenizer and appended
to the output in the listed order, followed by the separator token when one
is configured. The result is exactly the format TokenCorpus reads:
little-endian uint16 records, no header.

The output is written to a temporary file and renamed into place, so a
failed build never leaves a truncated corpus behind.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, NamedTuple

from tinyclm.config.exceptions import ConfigError
from tinyclm.config.schema import CorpusConfig
from tinyclm.logging.logger import get_logger
from tinyclm.tokenizer.artifacts.core import TokenizerCodec
from tinyclm.training.corpus.core import RECORD_WIDTH, encode_tokens
from tinyclm.utils.hashing import compute_sha256

logger: logging.Logger = get_logger(__name__)

MAX_TOKEN_ID = 0xFFFF


class CorpusBuildResult(NamedTuple):
    output_path: str
    documents: int
    total_tokens: int
    sha256: str


def write_token_file(token_chunks: Iterable[list[int]], output_path: Path) -> int:
    """
    Write token id chunks as one corpus file, atomically.

    Returns:
        Number of tokens written.

    Raises:
        CorpusFormatError: A token id outside the uint16 range.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = output_path.with_name(output_path.name + ".tmp")
    total = 0
    try:
        with open(tmp_path, "wb") as f:
            for chunk in token_chunks:
                f.write(encode_tokens(chunk))
                total += len(chunk)
        os.replace(tmp_path, output_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
    return total


def build_corpus(config: CorpusConfig, tokenizer: TokenizerCodec) -> CorpusBuildResult:
    """
    Encode every configured source file into `config.output_path`.

    Raises:
        ConfigError: No sources, a missing source, a vocabulary too large for
            uint16 records, or an unknown separator token.
    """
    if not config.source_files:
        raise ConfigError("corpus.source_files is empty; nothing to encode")

    if tokenizer.vocab_size - 1 > MAX_TOKEN_ID:
        raise ConfigError(
            f"Tokenizer vocabulary of {tokenizer.vocab_size} does not fit in "
            f"{RECORD_WIDTH * 8}-bit corpus records"
        )

    separator: list[int] = []
    if config.separator_token is not None:
        separator_id = tokenizer.token_id(config.separator_token)
        if separator_id is None:
            raise ConfigError(
                f"Separator token {config.separator_token!r} is not in the tokenizer vocabulary"
            )
        separator = [separator_id]

    sources = [Path(p) for p in config.source_files]
    missing = [str(p) for p in sources if not p.is_file()]
    if missing:
        raise ConfigError(f"Corpus source files not found: {', '.join(missing)}")

    def _chunks() -> Iterable[list[int]]:
        for source in sources:
            ids = tokenizer.encode(source.read_text(encoding="utf-8"))
            logger.debug("Encoded source", extra={"path": str(source), "tokens": len(ids)})
            yield ids + separator

    output_path = Path(config.output_path)
    total = write_token_file(_chunks(), output_path)
    digest = compute_sha256(output_path)

    logger.info(
        "Corpus built",
        extra={
            "output_path": str(output_path),
            "documents": len(sources),
            "tokens": total,
            "sha256": digest[:16] + "...",
        },
    )
    return CorpusBuildResult(
        output_path=str(output_path),
        documents=len(sources),
        total_tokens=total,
        sha256=digest,
    )
