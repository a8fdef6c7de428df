# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Training progress reporting.

The loop reports (iteration, total, loss) after every step to an optional
observer. Observers are display only: `notify_progress` logs and drops any
exception they raise so a broken observer can never stop a run.

LoggingProgressObserver is the default observer; it emits a structured log
line every `log_interval` iterations, on the last iteration, and immediately
for a non-finite loss.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

from tinyclm.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)


class ProgressObserver(Protocol):
    def __call__(self, iteration: int, total: int, loss: float) -> None: ...


@dataclass
class LoggingProgressObserver:
    """
    Args:
        log_interval: Log every N iterations.
        tokens_per_iteration: batch_size * sequence_length, for throughput.
    """

    log_interval: int = 10
    tokens_per_iteration: int = 0
    _start_time: Optional[float] = field(default=None, init=False)
    _last_time: Optional[float] = field(default=None, init=False)
    _last_iteration: int = field(default=0, init=False)

    def __call__(self, iteration: int, total: int, loss: float) -> None:
        now = time.monotonic()
        if self._start_time is None:
            self._start_time = now
            self._last_time = now

        is_last = iteration + 1 == total
        finite = math.isfinite(loss)
        if finite and not is_last and iteration % self.log_interval != 0:
            return

        elapsed = now - (self._last_time or now)
        window = iteration - self._last_iteration
        tokens_per_sec = (
            window * self.tokens_per_iteration / elapsed if elapsed > 0 else 0.0
        )
        self._last_time = now
        self._last_iteration = iteration

        entry = {
            "iteration": iteration,
            "total": total,
            "loss": round(loss, 6) if finite else str(loss),
            "tokens_per_sec": round(tokens_per_sec, 1),
        }
        if finite:
            logger.info("Training step", extra=entry)
        else:
            logger.warning("Non-finite loss", extra=entry)


def notify_progress(
    observer: Optional[ProgressObserver],
    iteration: int,
    total: int,
    loss: float,
) -> None:
    """Call `observer` if set; exceptions are logged and swallowed."""
    if observer is None:
        return
    try:
        observer(iteration, total, loss)
    except Exception as err:
        logger.warning(
            "Progress observer failed",
            extra={"iteration": iteration, "error": str(err)},
        )
