# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Failures raised by the training and decoding core.

  CorpusIOError       the corpus file can't be opened, seeked or fully read
  CorpusFormatError   the corpus length isn't a whole number of records
  CorpusTooSmallError the corpus can't hold one window plus its label shift
  ExternalModelError  the model, optimizer or tokenizer collaborator failed

None of these are retried. A non-finite loss is not an exception: it ends
the loop with TrainingStatus.ABORTED.
"""

from tinyclm.config.exceptions import ConfigError


class CorpusIOError(OSError):
    """Raised when the corpus file cannot be opened or read in full."""


class CorpusFormatError(ConfigError):
    """Raised when the corpus byte length is not a multiple of the record width."""


class CorpusTooSmallError(ConfigError):
    """Raised when the corpus has too few tokens for the requested window."""


class ExternalModelError(RuntimeError):
    """Raised when a trainable/inference model or tokenizer call fails."""
