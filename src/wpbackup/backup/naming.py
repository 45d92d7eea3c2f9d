"""
Canonical artifact filenames.

Backups are stored as pairs of files sharing an identifier and a timestamp:

    backup-example.com-db-2024-06-01_00-00-00.sql.gz
    backup-example.com-files-2024-06-01_00-00-00.tar.gz

With no identifier the separator is dropped (``backup-db-<ts>.sql.gz``).
This layout is read back by later runs, so it must not change.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
TIMESTAMP_PATTERN = r"\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}"

_TIMESTAMP_RE = re.compile(TIMESTAMP_PATTERN)


class ArtifactKind(Enum):
    """Kind of backup artifact, with its filename tag and extension."""

    DATABASE = "db"
    FILES = "files"

    @property
    def tag(self) -> str:
        return self.value

    @property
    def extension(self) -> str:
        if self is ArtifactKind.DATABASE:
            return "sql.gz"
        return "tar.gz"

    @property
    def label(self) -> str:
        if self is ArtifactKind.DATABASE:
            return "Database"
        return "Files"


@dataclass(frozen=True)
class BackupArtifact:
    """A single compressed backup file."""

    kind: ArtifactKind
    identifier: str
    timestamp: str
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


def format_timestamp(moment: datetime | None = None) -> str:
    """Format a datetime (default: now) as a sortable artifact timestamp."""
    if moment is None:
        moment = datetime.now()
    return moment.strftime(TIMESTAMP_FORMAT)


def is_valid_timestamp(value: str) -> bool:
    """Check that a string is a well-formed artifact timestamp."""
    if not _TIMESTAMP_RE.fullmatch(value):
        return False
    try:
        datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return False
    return True


def _prefix(identifier: str) -> str:
    return f"backup-{identifier}" if identifier else "backup"


def artifact_name(kind: ArtifactKind, identifier: str, timestamp: str) -> str:
    """
    Build the filename for an artifact.

    Args:
        kind: Database or Files.
        identifier: Site identifier, may be empty.
        timestamp: Timestamp in TIMESTAMP_FORMAT.

    Returns:
        Filename without any directory component.

    Raises:
        ValueError: If the timestamp is malformed.
    """
    if not is_valid_timestamp(timestamp):
        raise ValueError(f"Invalid backup timestamp: {timestamp!r}")
    return f"{_prefix(identifier)}-{kind.tag}-{timestamp}.{kind.extension}"


def artifact_pattern(kind: ArtifactKind, identifier: str) -> re.Pattern[str]:
    """
    Compile a pattern matching artifact filenames for one identifier.

    The identifier is escaped, so characters such as ``.`` or ``[`` in a
    host name match only themselves.
    """
    return re.compile(
        re.escape(f"{_prefix(identifier)}-{kind.tag}-")
        + f"({TIMESTAMP_PATTERN})"
        + re.escape(f".{kind.extension}")
    )


def parse_timestamp(filename: str, kind: ArtifactKind, identifier: str) -> str | None:
    """
    Extract the timestamp from an artifact filename.

    Returns None when the filename does not belong to the given kind and
    identifier.
    """
    match = artifact_pattern(kind, identifier).fullmatch(filename)
    if match is None:
        return None
    timestamp = match.group(1)
    if not is_valid_timestamp(timestamp):
        return None
    return timestamp


def artifact_for(
    kind: ArtifactKind, identifier: str, timestamp: str, storage_dir: Path
) -> BackupArtifact:
    """Build the artifact record for a kind, identifier and timestamp in storage_dir."""
    path = Path(storage_dir) / artifact_name(kind, identifier, timestamp)
    return BackupArtifact(kind=kind, identifier=identifier, timestamp=timestamp, path=path)
