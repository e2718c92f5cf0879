"""
Provides SHA-256 integrity checks for downloaded archives.
"""

import hashlib
import logging
from pathlib import Path

from gvm_cli.exceptions import DigestMismatchError, FileSystemError

log = logging.getLogger(__name__)


class IntegrityVerifier:
    """Computes and checks streaming SHA-256 digests."""

    CHUNK_SIZE = 1048576  # 1 MB

    @classmethod
    def digest(cls, path: Path) -> str:
        """
        Computes the hex SHA-256 of a file without loading it into memory.

        Args:
            path: File to hash.

        Returns:
            The lowercase hex digest.

        Raises:
            FileSystemError: If the file cannot be read.
        """
        hasher = hashlib.sha256()
        try:
            with open(path, "rb") as f:
                while chunk := f.read(cls.CHUNK_SIZE):
                    hasher.update(chunk)
        except OSError as e:
            raise FileSystemError(f"Cannot read '{path}' for hashing: {e}") from e
        return hasher.hexdigest()

    @classmethod
    def verify(cls, path: Path, expected_hex: str) -> None:
        """
        Checks a file against an expected digest, ignoring case.

        Raises:
            DigestMismatchError: If the digests differ.
            FileSystemError: If the file cannot be read.
        """
        actual = cls.digest(path)
        if actual.lower() != expected_hex.strip().lower():
            raise DigestMismatchError(str(path), expected_hex, actual)
        log.debug(f"SHA-256 verified for '{path.name}': {actual}")
