# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
SHA256 helpers for export bundles and built corpora.

Exports record the digest of their weights file and the loader refuses a
bundle whose weights no longer match it.
"""

import hashlib
from pathlib import Path

HASH_BUFFER_SIZE = 1 << 16


def compute_sha256(file_path: Path) -> str:
    """
    Hex digest of a file, streamed in HASH_BUFFER_SIZE blocks.

    Raises:
        FileNotFoundError: No file at `file_path`.
    """
    digest = hashlib.sha256()
    with open(file_path, "rb") as stream:
        for block in iter(lambda: stream.read(HASH_BUFFER_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def verify_checksum(file_path: Path, expected_hash: str) -> bool:
    """Case-insensitive comparison against a recorded hex digest."""
    return compute_sha256(file_path) == expected_hash.strip().lower()
