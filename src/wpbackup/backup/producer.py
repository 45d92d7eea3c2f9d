"""
Creation of new backup pairs.

A pair is written in three fail-fast steps: database dump, file archive,
then an integrity check of both. Nothing already written is removed when
a later step fails.
"""

from __future__ import annotations

import logging
import tarfile
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from wpbackup.backup.archive import TarArchiver
from wpbackup.backup.catalog import BackupPair
from wpbackup.backup.context import BackupContext
from wpbackup.backup.database import DatabaseClient
from wpbackup.backup.errors import BackupFailureError, IntegrityFailureError, ToolFailureError
from wpbackup.backup.naming import ArtifactKind, artifact_for, format_timestamp
from wpbackup.backup.verifier import IntegrityVerifier

logger = logging.getLogger(__name__)


@dataclass
class BackupResult:
    """Result of a successful backup."""

    pair: BackupPair
    include_uploads: bool
    database_bytes: int = 0
    files_bytes: int = 0
    files_entries: int = 0


class BackupProducer:
    """Writes and verifies a new database/files backup pair."""

    def __init__(
        self,
        context: BackupContext,
        database: DatabaseClient,
        archiver: TarArchiver | None = None,
        verifier: IntegrityVerifier | None = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the producer.

        Args:
            context: Run context (root, identifier, directories).
            database: Client used to dump the live database.
            archiver: Archiver for the file tree.
            verifier: Integrity checker run on the new artifacts.
            now: Clock used for the pair timestamp.
        """
        self.context = context
        self.database = database
        self.archiver = archiver or TarArchiver()
        self.verifier = verifier or IntegrityVerifier(archiver=self.archiver)
        self.now = now

    def excludes(self, include_uploads: bool) -> list[str]:
        """Paths, relative to the root, left out of the file archive."""
        excludes = [self.context.storage_subdir]
        if not include_uploads:
            excludes.append(self.context.uploads_subdir)
        return excludes

    def produce(self, include_uploads: bool) -> BackupResult:
        """
        Create a new backup pair.

        Args:
            include_uploads: Whether the uploads directory is archived.

        Returns:
            BackupResult describing the verified pair.

        Raises:
            BackupFailureError: If any step fails. ``stage`` names the step
                and ``written`` lists the files left on disk.
        """
        ctx = self.context
        timestamp = format_timestamp(self.now())
        storage_dir = ctx.storage_dir

        database = artifact_for(ArtifactKind.DATABASE, ctx.identifier, timestamp, storage_dir)
        files = artifact_for(ArtifactKind.FILES, ctx.identifier, timestamp, storage_dir)

        try:
            storage_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackupFailureError(
                "database", f"Cannot create backup directory {storage_dir}: {e}"
            ) from e

        for artifact in (database, files):
            if artifact.path.exists():
                raise BackupFailureError(
                    "database", f"A backup named {artifact.name} already exists"
                )

        written: list[Path] = []

        # Step 1: database dump, compressed while streaming
        try:
            self.database.dump_to(database.path)
        except ToolFailureError as e:
            if database.path.exists():
                written.append(database.path)
            raise BackupFailureError("database", f"Database backup failed: {e}", written) from e
        written.append(database.path)
        logger.info(f"Compressed database backup created: {database.path}")

        # Step 2: file tree, without prior backups and optionally without uploads
        excludes = self.excludes(include_uploads)
        try:
            entries = self.archiver.create(ctx.root, files.path, excludes=excludes)
        except (OSError, tarfile.TarError) as e:
            if files.path.exists():
                written.append(files.path)
            raise BackupFailureError("files", f"Files backup failed: {e}", written) from e
        written.append(files.path)
        logger.info(f"Files backup created: {files.path} ({entries} entries)")

        # Step 3: both artifacts must read back cleanly
        try:
            self.verifier.require([database, files])
        except IntegrityFailureError as e:
            raise BackupFailureError(
                "verify",
                f"Backup files were written but could not be verified: {e}",
                written,
            ) from e

        return BackupResult(
            pair=BackupPair(database=database, files=files),
            include_uploads=include_uploads,
            database_bytes=database.path.stat().st_size,
            files_bytes=files.path.stat().st_size,
            files_entries=entries,
        )
