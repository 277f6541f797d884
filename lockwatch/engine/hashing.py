"""Content hashing for the lockfile and the private library.

Hashes are CRC32 checksums rendered as lowercase hex. They only need to
notice ordinary content changes; nothing here is security sensitive.
"""

import logging
import os
import zlib
from pathlib import Path

from ..errors import ArtifactReadError
from ..types import Artifact


logger = logging.getLogger(__name__)

DESCRIPTION_FILE = "DESCRIPTION"


def crc32_hex(data: bytes) -> str:
    """CRC32 of ``data`` as unpadded lowercase hex."""
    return format(zlib.crc32(data) & 0xFFFFFFFF, "x")


class HashComputer:
    """Computes the current (``computed`` tier) hash of each artifact."""

    def __init__(self, lockfile_path: Path, library_path: Path):
        self.lockfile_path = Path(lockfile_path)
        self.library_path = Path(library_path)

    def compute(self, artifact: Artifact) -> str:
        if artifact == Artifact.LOCKFILE:
            return self.compute_lockfile_hash()
        return self.compute_library_hash()

    def compute_lockfile_hash(self) -> str:
        """Hash the lockfile bytes.

        Returns:
            Hex digest, or "" when the lockfile does not exist (the project
            is not managed by Packrat yet)

        Raises:
            ArtifactReadError: If the lockfile exists but cannot be read
        """
        if not self.lockfile_path.exists():
            return ""

        try:
            content = self.lockfile_path.read_bytes()
        except OSError as e:
            raise ArtifactReadError(str(self.lockfile_path), str(e)) from e

        return crc32_hex(content)

    def compute_library_hash(self) -> str:
        """Hash the concatenated DESCRIPTION files of the library.

        Files are visited top-down in filesystem order, so the digest is
        sensitive to both content and traversal order.

        Returns:
            Hex digest, or "" when no DESCRIPTION file exists

        Raises:
            ArtifactReadError: If a DESCRIPTION file cannot be read
        """
        if not self.library_path.is_dir():
            return ""

        content = bytearray()
        for dirpath, dirnames, filenames in os.walk(self.library_path, onerror=self._on_walk_error):
            if DESCRIPTION_FILE not in filenames:
                continue
            desc_path = os.path.join(dirpath, DESCRIPTION_FILE)
            if not os.path.isfile(desc_path):
                continue
            try:
                with open(desc_path, "rb") as f:
                    content.extend(f.read())
            except OSError as e:
                raise ArtifactReadError(desc_path, str(e)) from e

        if not content:
            return ""

        return crc32_hex(bytes(content))

    def _on_walk_error(self, error: OSError) -> None:
        raise ArtifactReadError(str(error.filename or self.library_path), str(error)) from error
