# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Loading a tokenizer.json and adapting it to the decoder's text codec.

The decoder only needs `encode(text) -> ids` and `decode(ids) -> text`.
TokenizerCodec provides both on top of a HuggingFace `tokenizers.Tokenizer`
and reports tokenizer failures as ExternalModelError.
"""

import logging
from pathlib import Path
from typing import Protocol

from tokenizers import Tokenizer

from tinyclm.logging.logger import get_logger
from tinyclm.tokenizer.decoder.core import decode
from tinyclm.tokenizer.encoder.core import encode
from tinyclm.training.exceptions import ExternalModelError

logger: logging.Logger = get_logger(__name__)


class TextCodec(Protocol):
    def encode(self, text: str) -> list[int]: ...

    def decode(self, ids: list[int]) -> str: ...


def load_tokenizer(path: Path) -> Tokenizer:
    """
    Raises:
        FileNotFoundError: No tokenizer file at `path`.
        ExternalModelError: The file exists but isn't a valid tokenizer.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Tokenizer file not found: {path}")
    try:
        tokenizer = Tokenizer.from_file(str(path))
    except Exception as err:
        raise ExternalModelError(f"Cannot load tokenizer {path}: {err}") from err

    logger.info(
        "Tokenizer loaded",
        extra={"path": str(path), "vocab_size": tokenizer.get_vocab_size()},
    )
    return tokenizer


class TokenizerCodec:
    """TextCodec over a `tokenizers.Tokenizer`."""

    def __init__(self, tokenizer: Tokenizer) -> None:
        self.tokenizer = tokenizer

    @classmethod
    def from_file(cls, path: Path) -> "TokenizerCodec":
        return cls(load_tokenizer(path))

    @property
    def vocab_size(self) -> int:
        return self.tokenizer.get_vocab_size()

    def token_id(self, token: str) -> int | None:
        return self.tokenizer.token_to_id(token)

    def encode(self, text: str) -> list[int]:
        try:
            return encode(self.tokenizer, text)
        except Exception as err:
            raise ExternalModelError(f"Tokenizer encode failed: {err}") from err

    def decode(self, ids: list[int]) -> str:
        try:
            return decode(self.tokenizer, ids)
        except Exception as err:
            raise ExternalModelError(f"Tokenizer decode failed: {err}") from err
