"""
Non-destructive integrity checks for backup artifacts.

Checks only read the artifact; nothing is extracted and the live site is
never touched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from wpbackup.backup.archive import GzipCodec, TarArchiver
from wpbackup.backup.errors import IntegrityFailureError
from wpbackup.backup.naming import ArtifactKind, BackupArtifact

logger = logging.getLogger(__name__)


class IntegrityVerifier:
    """Structural checks: gzip stream test for dumps, member listing for archives."""

    def __init__(
        self,
        codec: GzipCodec | None = None,
        archiver: TarArchiver | None = None,
    ) -> None:
        self.codec = codec or GzipCodec()
        self.archiver = archiver or TarArchiver()

    def verify(self, artifact: BackupArtifact) -> tuple[bool, list[str]]:
        """
        Verify one artifact.

        Args:
            artifact: Database or files artifact to check.

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        path = Path(artifact.path)
        if not path.is_file():
            return False, [f"Backup file not found: {path}"]

        ok, error = self.codec.test(path)
        if not ok:
            return False, [error or "gzip test failed"]

        if artifact.kind is ArtifactKind.FILES:
            ok, entries = self.archiver.list_entries(path)
            if not ok:
                return False, entries
            logger.debug(f"{path.name}: {len(entries)} entries listed")

        return True, []

    def require(self, artifacts: Iterable[BackupArtifact]) -> list[BackupArtifact]:
        """
        Verify artifacts in order, stopping at the first failure.

        Returns:
            The artifacts that passed.

        Raises:
            IntegrityFailureError: On the first artifact that fails.
        """
        passed: list[BackupArtifact] = []
        for artifact in artifacts:
            ok, errors = self.verify(artifact)
            if not ok:
                logger.error(f"{artifact.kind.label} backup integrity check failed: {artifact.name}")
                raise IntegrityFailureError(artifact.path, errors)
            logger.info(f"{artifact.kind.label} backup integrity check passed: {artifact.name}")
            passed.append(artifact)
        return passed
