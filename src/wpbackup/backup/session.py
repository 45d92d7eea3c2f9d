"""
One interactive backup/restore run.

Existing pairs are offered for restore first. A completed restore ends the
run; declining, or having nothing to restore, leads to a fresh backup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from wpbackup.backup.archive import TarArchiver
from wpbackup.backup.catalog import CatalogScan, scan
from wpbackup.backup.context import BackupContext
from wpbackup.backup.database import DatabaseClient
from wpbackup.backup.producer import BackupProducer, BackupResult
from wpbackup.backup.restore import DecisionProvider, RestoreOrchestrator, RestoreResult
from wpbackup.backup.verifier import IntegrityVerifier

logger = logging.getLogger(__name__)


@dataclass
class SessionResult:
    """What a session did: at most one restore and at most one backup."""

    catalog: CatalogScan
    restore: RestoreResult | None = None
    backup: BackupResult | None = None

    @property
    def restored(self) -> bool:
        return self.restore is not None and self.restore.completed


class BackupSession:
    """Runs the restore-or-backup flow for one WordPress site."""

    def __init__(
        self,
        context: BackupContext,
        database: DatabaseClient,
        decisions: DecisionProvider,
        archiver: TarArchiver | None = None,
        verifier: IntegrityVerifier | None = None,
    ) -> None:
        self.context = context
        self.database = database
        self.decisions = decisions
        self.archiver = archiver or TarArchiver()
        self.verifier = verifier or IntegrityVerifier(archiver=self.archiver)

    def scan(self) -> CatalogScan:
        return scan(self.context.storage_dir, self.context.identifier)

    def restore(self, catalog: CatalogScan) -> RestoreResult:
        orchestrator = RestoreOrchestrator(
            self.context,
            self.database,
            self.decisions,
            archiver=self.archiver,
            verifier=self.verifier,
        )
        return orchestrator.run(catalog.pairs)

    def backup(self) -> BackupResult:
        include_uploads = self.decisions.include_uploads()
        if include_uploads:
            logger.info(f"Including {self.context.uploads_subdir} in the backup")
        else:
            logger.info(f"Excluding {self.context.uploads_subdir} from the backup")
        producer = BackupProducer(
            self.context,
            self.database,
            archiver=self.archiver,
            verifier=self.verifier,
        )
        return producer.produce(include_uploads)

    def run(self) -> SessionResult:
        """
        Offer a restore, then back up unless a restore completed.

        Raises:
            BackupError: If a restore fails or the backup cannot be created.
        """
        catalog = self.scan()
        result = SessionResult(catalog=catalog)

        if catalog.has_pairs:
            result.restore = self.restore(catalog)
            if result.restore.failed and result.restore.error is not None:
                raise result.restore.error
            if result.restore.completed:
                return result
            logger.info("Proceeding with backup")
        else:
            logger.info(f"No restorable backups ({catalog.status.value}), proceeding with backup")

        result.backup = self.backup()
        return result
