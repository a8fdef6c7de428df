# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Streaming token emitter.

Each decoded token is packaged as a StreamChunk the moment it exists, so
the consumer (stdout in the CLI, a list in tests) sees token N before the
model is asked for token N+1.
"""

import time
from dataclasses import dataclass


@dataclass(frozen=True)
class StreamChunk:
    """One newly generated token and its text."""

    token_text: str
    token_id: int
    position: int
    elapsed_ms: float
    done: bool = False


class TokenStreamer:
    """Numbers chunks from 0 and stamps each with time since construction."""

    def __init__(self) -> None:
        self._emitted = 0
        self._started = time.monotonic()

    @property
    def token_count(self) -> int:
        return self._emitted

    @property
    def elapsed_ms(self) -> float:
        return 1000.0 * (time.monotonic() - self._started)

    def emit(self, token_text: str, token_id: int, done: bool = False) -> StreamChunk:
        position = self._emitted
        self._emitted += 1
        return StreamChunk(token_text, token_id, position, self.elapsed_ms, done)
