"""
Restore of a selected backup pair.

The restore runs as a small state machine:

    IDLE -> PAIRS_OFFERED -> PAIR_SELECTED -> SCOPE_CHOSEN -> CONFIRMED
         -> VERIFYING -> APPLYING -> DONE

Declining a prompt before confirmation ends in CANCELLED. Invalid input,
a failed integrity check or a failed apply step ends in FAILED; nothing is
applied unless every artifact in scope has been verified first.

No snapshot of the live site is taken before applying. A restore that
fails half way leaves the database or file tree partly overwritten.
"""

from __future__ import annotations

import logging
import tarfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from wpbackup.backup.archive import TarArchiver
from wpbackup.backup.catalog import BackupPair
from wpbackup.backup.context import BackupContext
from wpbackup.backup.database import DatabaseClient
from wpbackup.backup.errors import (
    BackupError,
    InvalidScopeError,
    InvalidSelectionError,
    ToolFailureError,
)
from wpbackup.backup.naming import ArtifactKind, BackupArtifact
from wpbackup.backup.verifier import IntegrityVerifier

logger = logging.getLogger(__name__)


class RestoreScope(Enum):
    """Which members of a pair are restored, keyed by their menu number."""

    BOTH = "1"
    DATABASE_ONLY = "2"
    FILES_ONLY = "3"

    @property
    def label(self) -> str:
        return {
            RestoreScope.BOTH: "Both DB and Files",
            RestoreScope.DATABASE_ONLY: "Only DB",
            RestoreScope.FILES_ONLY: "Only Files",
        }[self]

    @property
    def kinds(self) -> tuple[ArtifactKind, ...]:
        """Artifact kinds in scope, database first."""
        if self is RestoreScope.DATABASE_ONLY:
            return (ArtifactKind.DATABASE,)
        if self is RestoreScope.FILES_ONLY:
            return (ArtifactKind.FILES,)
        return (ArtifactKind.DATABASE, ArtifactKind.FILES)

    @classmethod
    def parse(cls, value: str | RestoreScope) -> RestoreScope:
        """
        Convert a menu answer to a scope.

        Raises:
            InvalidScopeError: If the answer is not 1, 2 or 3.
        """
        if isinstance(value, RestoreScope):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            raise InvalidScopeError(f"Invalid restore scope: {value!r}") from None


class RestoreState(Enum):
    """States of a restore run."""

    IDLE = "idle"
    PAIRS_OFFERED = "pairs_offered"
    PAIR_SELECTED = "pair_selected"
    SCOPE_CHOSEN = "scope_chosen"
    CONFIRMED = "confirmed"
    VERIFYING = "verifying"
    APPLYING = "applying"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class DecisionProvider(Protocol):
    """Answers to the interactive questions of a backup/restore run."""

    def choose_pair(self, pairs: Sequence[BackupPair]) -> str | int:
        """Return a 1-based pair number, or 0 to skip restoring."""
        ...

    def choose_scope(self, pair: BackupPair) -> str | RestoreScope:
        """Return the restore scope (1: both, 2: database, 3: files)."""
        ...

    def confirm_restore(self, pair: BackupPair, scope: RestoreScope) -> bool:
        """Return True to go ahead with an overwriting restore."""
        ...

    def include_uploads(self) -> bool:
        """Return True to include the uploads directory in a new backup."""
        ...


@dataclass(frozen=True)
class RestoreSelection:
    """The pair and scope chosen for one restore."""

    pair: BackupPair
    scope: RestoreScope

    @property
    def artifacts(self) -> list[BackupArtifact]:
        """Artifacts in scope, in the order they are applied."""
        by_kind = {
            ArtifactKind.DATABASE: self.pair.database,
            ArtifactKind.FILES: self.pair.files,
        }
        return [by_kind[kind] for kind in self.scope.kinds]


@dataclass
class RestoreResult:
    """Outcome of a restore run."""

    state: RestoreState
    selection: RestoreSelection | None = None
    verified: list[BackupArtifact] = field(default_factory=list)
    applied: list[BackupArtifact] = field(default_factory=list)
    error: BackupError | None = None
    history: list[RestoreState] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.state is RestoreState.DONE

    @property
    def cancelled(self) -> bool:
        return self.state is RestoreState.CANCELLED

    @property
    def failed(self) -> bool:
        return self.state is RestoreState.FAILED

    @property
    def skipped(self) -> bool:
        """True when there was nothing to offer."""
        return self.state is RestoreState.IDLE


class RestoreOrchestrator:
    """Drives a single restore from pair selection to completion."""

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
        self._result = RestoreResult(state=RestoreState.IDLE, history=[RestoreState.IDLE])

    @property
    def state(self) -> RestoreState:
        return self._result.state

    def run(self, pairs: Sequence[BackupPair]) -> RestoreResult:
        """
        Offer the pairs and restore the one chosen.

        Errors are not raised; they end the run in the FAILED state with
        ``error`` set.

        Args:
            pairs: Restorable pairs, newest first.

        Returns:
            RestoreResult in a terminal state, or IDLE when pairs is empty.
        """
        self._result = result = RestoreResult(state=RestoreState.IDLE, history=[RestoreState.IDLE])
        if not pairs:
            return result

        try:
            self._transition(RestoreState.PAIRS_OFFERED)
            pair = self._select_pair(pairs)
            if pair is None:
                logger.info("No restore selected")
                return self._transition(RestoreState.CANCELLED)
            self._transition(RestoreState.PAIR_SELECTED)

            scope = RestoreScope.parse(self.decisions.choose_scope(pair))
            result.selection = RestoreSelection(pair=pair, scope=scope)
            self._transition(RestoreState.SCOPE_CHOSEN)

            if not self.decisions.confirm_restore(pair, scope):
                logger.info("Restore cancelled at confirmation")
                return self._transition(RestoreState.CANCELLED)
            self._transition(RestoreState.CONFIRMED)

            self._transition(RestoreState.VERIFYING)
            result.verified = self.verifier.require(result.selection.artifacts)

            self._transition(RestoreState.APPLYING)
            for artifact in result.selection.artifacts:
                self._apply(artifact)
                result.applied.append(artifact)

        except BackupError as e:
            logger.error(f"Restore failed in state {self.state.value}: {e}")
            result.error = e
            return self._transition(RestoreState.FAILED)

        logger.info("Restore process completed successfully")
        return self._transition(RestoreState.DONE)

    def _transition(self, state: RestoreState) -> RestoreResult:
        logger.debug(f"Restore state: {self._result.state.value} -> {state.value}")
        self._result.state = state
        self._result.history.append(state)
        return self._result

    def _select_pair(self, pairs: Sequence[BackupPair]) -> BackupPair | None:
        """Ask for a pair number; 0 means skip."""
        answer = self.decisions.choose_pair(pairs)
        try:
            index = int(str(answer).strip())
        except ValueError:
            raise InvalidSelectionError(f"Invalid backup selection: {answer!r}") from None

        if index == 0:
            return None
        if not 1 <= index <= len(pairs):
            raise InvalidSelectionError(
                f"Backup selection {index} is out of range (1-{len(pairs)})"
            )
        return pairs[index - 1]

    def _apply(self, artifact: BackupArtifact) -> None:
        """Overwrite the live database or file tree from one artifact."""
        if artifact.kind is ArtifactKind.DATABASE:
            logger.info(f"Restoring database from {artifact.name}")
            self.database.apply_from(artifact.path)
            logger.info("Database restored successfully")
            return

        logger.info(f"Restoring files from {artifact.name}")
        try:
            count = self.archiver.extract(artifact.path, self.context.root)
        except (OSError, tarfile.TarError) as e:
            raise ToolFailureError("tar", f"Files restore failed: {e}") from e
        logger.info(f"Files restored successfully ({count} entries)")
