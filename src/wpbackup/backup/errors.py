"""
Exception hierarchy for backup and restore operations.

Discovery problems (missing storage directory, unreadable listings, an
unreachable site-address query) are recovered locally and never raise.
Everything defined here is fatal for the current run.
"""

from __future__ import annotations

from pathlib import Path


class BackupError(Exception):
    """Base exception for backup and restore failures."""

    pass


class ToolFailureError(BackupError):
    """Raised when an external tool (mysqldump, mysql) fails or times out."""

    def __init__(self, tool: str, message: str, returncode: int | None = None) -> None:
        self.tool = tool
        self.returncode = returncode
        super().__init__(f"{tool}: {message}")


class IntegrityFailureError(BackupError):
    """Raised when an artifact fails its structural integrity check."""

    def __init__(self, path: Path, errors: list[str]) -> None:
        self.path = Path(path)
        self.errors = list(errors)
        detail = "; ".join(self.errors) if self.errors else "unknown error"
        super().__init__(f"Integrity check failed for {self.path.name}: {detail}")


class BackupFailureError(BackupError):
    """
    Raised when creating a backup pair fails.

    Attributes:
        stage: Step that failed ("database", "files" or "verify").
        written: Artifacts already on disk when the failure happened.
    """

    def __init__(self, stage: str, message: str, written: list[Path] | None = None) -> None:
        self.stage = stage
        self.written = list(written or [])
        super().__init__(message)


class RestoreError(BackupError):
    """Raised when a restore cannot proceed."""

    pass


class InvalidSelectionError(RestoreError):
    """Raised when the chosen backup index is out of range or not a number."""

    pass


class InvalidScopeError(RestoreError):
    """Raised when the chosen restore scope is not recognized."""

    pass
