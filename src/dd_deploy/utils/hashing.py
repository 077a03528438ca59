"""Content fingerprints used for descriptor change detection."""

import hashlib
from pathlib import Path
from typing import BinaryIO, Union

CHUNK_SIZE = 8192


def fingerprint(stream: BinaryIO) -> str:
    """Compute the SHA256 of a binary stream without loading it whole.

    Returns:
        Lowercase hex string of SHA256 hash
    """
    sha256_hash = hashlib.sha256()
    for byte_block in iter(lambda: stream.read(CHUNK_SIZE), b""):
        sha256_hash.update(byte_block)
    return sha256_hash.hexdigest()


def fingerprint_file(file_path: Union[str, Path]) -> str:
    with open(file_path, "rb") as f:
        return fingerprint(f)
