"""Immutable per-run context shared by the backup components."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from wpbackup.config.settings import DEFAULT_STORAGE_DIR, DEFAULT_UPLOADS_DIR, Settings
from wpbackup.config.wpconfig import DatabaseCredentials


@dataclass(frozen=True)
class BackupContext:
    """
    Everything resolved once at startup.

    Attributes:
        root: WordPress installation directory.
        identifier: Site identifier used in filenames, may be empty.
        storage_subdir: Backup directory relative to root.
        uploads_subdir: Media directory relative to root.
        credentials: Database connection details, if known.
    """

    root: Path
    identifier: str = ""
    storage_subdir: str = DEFAULT_STORAGE_DIR
    uploads_subdir: str = DEFAULT_UPLOADS_DIR
    credentials: DatabaseCredentials | None = None

    @classmethod
    def from_settings(
        cls,
        root: Path,
        settings: Settings,
        identifier: str = "",
        credentials: DatabaseCredentials | None = None,
    ) -> BackupContext:
        return cls(
            root=Path(root).resolve(),
            identifier=identifier,
            storage_subdir=settings.storage_dir,
            uploads_subdir=settings.uploads_dir,
            credentials=credentials,
        )

    def with_identifier(self, identifier: str) -> BackupContext:
        """Return a copy carrying the resolved site identifier."""
        return replace(self, identifier=identifier)

    @property
    def storage_dir(self) -> Path:
        return self.root / self.storage_subdir
