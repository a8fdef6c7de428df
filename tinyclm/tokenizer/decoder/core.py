# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Token ids -> text.

Special tokens are kept in the output so a generated "<|endoftext|>" is
visible in the stream rather than silently dropped.
"""

from tokenizers import Tokenizer


def decode(tokenizer: Tokenizer, ids: list[int]) -> str:
    return tokenizer.decode(ids, skip_special_tokens=False)
