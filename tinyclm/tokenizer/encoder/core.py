# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Text -> token ids.

Special tokens are not added implicitly: a seed such as "<|endoftext|>" is
encoded exactly as written, and corpus documents get only the separators
the builder inserts.
"""

from tokenizers import Tokenizer


def encode(tokenizer: Tokenizer, text: str) -> list[int]:
    return tokenizer.encode(text, add_special_tokens=False).ids
