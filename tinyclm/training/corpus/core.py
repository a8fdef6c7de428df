# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Read-only random access over a flat binary token corpus.

File format: a headerless run of unsigned 16-bit token ids, little-endian,
two bytes per token. The corpus can be far larger than RAM, so nothing is
loaded up front: each window is a seek plus one read, decoded through an
explicit struct format rather than by reinterpreting the buffer in place.

The handle's read position is shared state. Seek-then-read pairs must not be
interleaved across threads, so one TokenCorpus belongs to one sampler.
"""

import logging
import struct
from pathlib import Path
from typing import BinaryIO

from tinyclm.logging.logger import get_logger
from tinyclm.training.exceptions import CorpusFormatError, CorpusIOError

logger: logging.Logger = get_logger(__name__)

RECORD_WIDTH = 2
_RECORD_FORMAT = "H"
_BYTE_ORDER = "<"


def decode_tokens(data: bytes) -> tuple[int, ...]:
    """
    Decode little-endian uint16 records.

    Raises:
        CorpusFormatError: If `data` is not a whole number of records.
    """
    if len(data) % RECORD_WIDTH != 0:
        raise CorpusFormatError(
            f"Token buffer of {len(data)} bytes is not a multiple of {RECORD_WIDTH}"
        )
    count = len(data) // RECORD_WIDTH
    return struct.unpack(f"{_BYTE_ORDER}{count}{_RECORD_FORMAT}", data)


def encode_tokens(token_ids: list[int]) -> bytes:
    """
    Pack token ids into corpus records.

    Raises:
        CorpusFormatError: If an id does not fit in an unsigned 16-bit record.
    """
    for token_id in token_ids:
        if not 0 <= token_id <= 0xFFFF:
            raise CorpusFormatError(f"Token id {token_id} does not fit in 16 bits")
    return struct.pack(f"{_BYTE_ORDER}{len(token_ids)}{_RECORD_FORMAT}", *token_ids)


class TokenCorpus:
    """
    Window reader over a corpus file.

    Open with `TokenCorpus.open(path)` and close when done; the object also
    works as a context manager. `token_count` is fixed at open time.
    """

    def __init__(self, path: Path, handle: BinaryIO, byte_length: int) -> None:
        self.path = path
        self._handle = handle
        self.byte_length = byte_length
        self.token_count = byte_length // RECORD_WIDTH

    @classmethod
    def open(cls, path: Path) -> "TokenCorpus":
        """
        Open a corpus file and size it.

        Raises:
            CorpusIOError: The file is missing or unreadable.
            CorpusFormatError: The size is not a multiple of RECORD_WIDTH.
        """
        path = Path(path)
        try:
            handle = open(path, "rb")
        except OSError as err:
            raise CorpusIOError(f"Cannot open corpus {path}: {err}") from err

        try:
            byte_length = path.stat().st_size
        except OSError as err:
            handle.close()
            raise CorpusIOError(f"Cannot stat corpus {path}: {err}") from err

        if byte_length % RECORD_WIDTH != 0:
            handle.close()
            raise CorpusFormatError(
                f"Corpus {path} is {byte_length} bytes, not a multiple of {RECORD_WIDTH}"
            )

        corpus = cls(path, handle, byte_length)
        logger.info(
            "Corpus opened",
            extra={"path": str(path), "bytes": byte_length, "tokens": corpus.token_count},
        )
        return corpus

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def read_window(self, start: int, length: int) -> tuple[int, ...]:
        """
        Read `length` tokens starting at token index `start`.

        Raises:
            ValueError: Negative start or length.
            CorpusIOError: Seek failure or fewer bytes than requested.
        """
        if start < 0 or length < 0:
            raise ValueError(f"Window start and length must be >= 0, got ({start}, {length})")

        wanted = length * RECORD_WIDTH
        try:
            self._handle.seek(start * RECORD_WIDTH)
            data = self._handle.read(wanted)
        except (OSError, ValueError) as err:
            raise CorpusIOError(f"Cannot read window ({start}, {length}) of {self.path}: {err}") from err

        if len(data) != wanted:
            raise CorpusIOError(
                f"Short read from {self.path}: wanted {wanted} bytes at token {start}, "
                f"got {len(data)}"
            )
        return decode_tokens(data)

    def close(self) -> None:
        self._handle.close()

    def __enter__(self) -> "TokenCorpus":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __len__(self) -> int:
        return self.token_count

    def __repr__(self) -> str:
        return f"TokenCorpus(path={str(self.path)!r}, token_count={self.token_count})"
