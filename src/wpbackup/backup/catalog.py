"""
Discovery of restorable backup pairs.

The catalog is rebuilt from a directory listing on every run; there is no
index file. Only database dumps with a matching file archive count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from wpbackup.backup.naming import (
    ArtifactKind,
    BackupArtifact,
    artifact_for,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupPair:
    """A database dump and file archive sharing identifier and timestamp."""

    database: BackupArtifact
    files: BackupArtifact

    def __post_init__(self) -> None:
        if self.database.kind is not ArtifactKind.DATABASE or self.files.kind is not ArtifactKind.FILES:
            raise ValueError("BackupPair needs one database and one files artifact")
        if (self.database.identifier, self.database.timestamp) != (
            self.files.identifier,
            self.files.timestamp,
        ):
            raise ValueError("BackupPair artifacts must share identifier and timestamp")

    @property
    def timestamp(self) -> str:
        return self.database.timestamp

    @property
    def identifier(self) -> str:
        return self.database.identifier


class CatalogStatus(Enum):
    """Outcome of a storage scan."""

    ABSENT = "absent"
    EMPTY = "empty"
    FOUND = "found"


@dataclass
class CatalogScan:
    """Result of scanning the storage directory."""

    status: CatalogStatus
    storage_dir: Path
    pairs: list[BackupPair] = field(default_factory=list)
    orphans: list[BackupArtifact] = field(default_factory=list)

    @property
    def has_pairs(self) -> bool:
        return bool(self.pairs)


def scan(storage_dir: Path, identifier: str) -> CatalogScan:
    """
    Scan storage_dir for complete backup pairs.

    Listing errors are logged and reported as an empty catalog so that the
    caller falls back to creating a backup. Storage is never modified.

    Args:
        storage_dir: Backup directory.
        identifier: Site identifier; only its artifacts are considered.

    Returns:
        CatalogScan with pairs sorted newest first.
    """
    storage_dir = Path(storage_dir)
    if not storage_dir.is_dir():
        logger.debug(f"Backup directory {storage_dir} does not exist")
        return CatalogScan(status=CatalogStatus.ABSENT, storage_dir=storage_dir)

    try:
        names = [entry.name for entry in storage_dir.iterdir() if entry.is_file()]
    except OSError as e:
        logger.warning(f"Cannot list backup directory {storage_dir}: {e}")
        return CatalogScan(status=CatalogStatus.EMPTY, storage_dir=storage_dir)

    dumps: list[tuple[str, str]] = []
    for name in names:
        timestamp = parse_timestamp(name, ArtifactKind.DATABASE, identifier)
        if timestamp is not None:
            dumps.append((timestamp, name))

    # Newest first; the filename breaks ties deterministically
    dumps.sort(reverse=True)

    pairs: list[BackupPair] = []
    orphans: list[BackupArtifact] = []
    for timestamp, _ in dumps:
        database = artifact_for(ArtifactKind.DATABASE, identifier, timestamp, storage_dir)
        files = artifact_for(ArtifactKind.FILES, identifier, timestamp, storage_dir)
        if files.path.is_file():
            pairs.append(BackupPair(database=database, files=files))
        else:
            logger.debug(f"Skipping {database.name}: no matching file archive")
            orphans.append(database)

    status = CatalogStatus.FOUND if pairs else CatalogStatus.EMPTY
    return CatalogScan(status=status, storage_dir=storage_dir, pairs=pairs, orphans=orphans)


def list_pairs(storage_dir: Path, identifier: str) -> list[BackupPair]:
    """Return the complete backup pairs in storage_dir, newest first."""
    return scan(storage_dir, identifier).pairs
