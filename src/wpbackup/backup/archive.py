"""
Compression and archiving for backup artifacts.

Database dumps are gzip streams; file backups are gzip-compressed tar
archives with members stored relative to the WordPress root (``./...``).
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tarfile
import zlib
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import BinaryIO

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# Errors raised by gzip and tarfile on damaged input
READ_ERRORS = (OSError, EOFError, zlib.error, tarfile.TarError)

# Extraction filter for file restores; symlink targets are kept as archived
EXTRACT_FILTER = tarfile.tar_filter

# Stand-in destination used to check members without extracting them
_CHECK_ROOT = os.path.join(os.sep, "wpbackup-check")


class GzipCodec:
    """Symmetric gzip stream codec."""

    def __init__(self, compresslevel: int = 6) -> None:
        self.compresslevel = compresslevel

    def compress_stream(self, source: BinaryIO, dest: Path) -> int:
        """
        Compress a byte stream into a new gzip file.

        Returns:
            Number of uncompressed bytes written.
        """
        total = 0
        with gzip.open(dest, "wb", compresslevel=self.compresslevel) as out:
            while chunk := source.read(CHUNK_SIZE):
                out.write(chunk)
                total += len(chunk)
        return total

    def test(self, path: Path) -> tuple[bool, str | None]:
        """
        Decompress a file to the end and discard the output.

        This checks the gzip header, the deflate stream and the CRC/length
        trailer without writing anything.

        Returns:
            Tuple of (is_valid, error_message).
        """
        try:
            with gzip.open(path, "rb") as f:
                while f.read(CHUNK_SIZE):
                    pass
        except READ_ERRORS as e:
            return False, f"gzip stream is damaged: {e}"
        return True, None

    def open_stream(self, path: Path) -> BinaryIO:
        """Open a gzip file for streaming decompression."""
        return gzip.open(path, "rb")  # type: ignore[return-value]


def _relative_name(name: str) -> str:
    """Normalize a tar member name to a path relative to the archive root."""
    parts = [part for part in PurePosixPath(name).parts if part not in (".", "/")]
    return "/".join(parts)


class TarArchiver:
    """Creates, lists and extracts tar.gz archives of a directory tree."""

    def create(self, root: Path, dest: Path, excludes: Iterable[str] = ()) -> int:
        """
        Archive everything under root into dest.

        Args:
            root: Directory to archive; members are stored as ``./...``.
            dest: Archive file to create.
            excludes: Paths relative to root to leave out, with everything
                beneath them.

        Returns:
            Number of members written.
        """
        excluded = {_relative_name(path) for path in excludes if _relative_name(path)}
        count = 0

        def exclude_filter(tarinfo: tarfile.TarInfo) -> tarfile.TarInfo | None:
            nonlocal count
            name = _relative_name(tarinfo.name)
            if name in excluded:
                logger.debug(f"Excluding {name} from file backup")
                return None
            count += 1
            return tarinfo

        with tarfile.open(dest, "w:gz") as tar:
            tar.add(root, arcname=".", filter=exclude_filter)

        return count

    def list_entries(self, path: Path) -> tuple[bool, list[str]]:
        """
        Enumerate every member of an archive without extracting it.

        Each member is also passed through the extraction filter, so an
        archive that extract() would refuse fails here instead.

        Returns:
            Tuple of (is_valid, member_names_or_errors). On failure the
            list holds the error message.
        """
        names: list[str] = []
        try:
            with tarfile.open(path, "r:gz") as tar:
                for member in tar:
                    EXTRACT_FILTER(member, _CHECK_ROOT)
                    names.append(member.name)
        except tarfile.FilterError as e:
            return False, [f"tar archive cannot be restored: {e}"]
        except READ_ERRORS as e:
            return False, [f"tar archive is damaged: {e}"]
        return True, names

    def extract(self, path: Path, dest: Path) -> int:
        """
        Extract an archive over dest, overwriting existing files.

        Members whose paths would land outside dest are rejected by the
        tarfile ``tar`` filter. Symlinks are restored with their archived
        targets, including absolute ones.

        Returns:
            Number of members extracted.
        """
        with tarfile.open(path, "r:gz") as tar:
            members = tar.getmembers()
            tar.extractall(dest, members=members, filter=EXTRACT_FILTER)
        return len(members)


def copy_stream(source: BinaryIO, dest: BinaryIO) -> None:
    """Copy one binary stream into another in fixed-size chunks."""
    shutil.copyfileobj(source, dest, CHUNK_SIZE)
