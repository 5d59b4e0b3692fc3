"""Content integrity verification.

SHA-256 over file bytes. Digests double as audit values stored with each
completed commit, so a weak checksum is not an option.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

_CHUNK_SIZE = 1024 * 1024


def compute_hash(content: bytes) -> str:
    """SHA-256 of in-memory bytes.

    Example:
        >>> compute_hash(b"hello")
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    return hashlib.sha256(content).hexdigest()


def compute_file_hash(path: Path) -> str:
    """SHA-256 of a file's contents, read in chunks.

    Raises:
        FileNotFoundError: If the file doesn't exist
        OSError: If the file cannot be read
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(_CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass(frozen=True, slots=True)
class Verification:
    """Outcome of comparing a source file with its copy."""

    source: Path
    destination: Path
    expected: str
    actual: str

    @property
    def matches(self) -> bool:
        return self.expected == self.actual


class IntegrityVerifier:
    """Stateless checksum comparison between a source file and its copy."""

    def checksum(self, path: Path) -> str:
        return compute_file_hash(path)

    def compare(self, source: Path, destination: Path) -> Verification:
        return Verification(
            source=source,
            destination=destination,
            expected=self.checksum(source),
            actual=self.checksum(destination),
        )

    def verify(self, source: Path, destination: Path) -> bool:
        """True when both files hash to the same digest."""
        return self.compare(source, destination).matches
