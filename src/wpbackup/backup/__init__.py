"""
Backup and restore of a WordPress database and file tree.

Backups are written as timestamped pairs (a gzip-compressed SQL dump and a
tar.gz of the site files) in a storage directory under the WordPress root.
Each artifact is verified after creation and again before it is restored.

Usage:
    from wpbackup.backup import BackupContext, BackupProducer, MysqlClient, list_pairs

    context = BackupContext(root=root, identifier="example.com")
    producer = BackupProducer(context, MysqlClient(credentials))
    result = producer.produce(include_uploads=False)

    pairs = list_pairs(context.storage_dir, context.identifier)
"""

from wpbackup.backup.archive import GzipCodec, TarArchiver
from wpbackup.backup.catalog import (
    BackupPair,
    CatalogScan,
    CatalogStatus,
    list_pairs,
    scan,
)
from wpbackup.backup.context import BackupContext
from wpbackup.backup.database import DatabaseClient, MysqlClient
from wpbackup.backup.errors import (
    BackupError,
    BackupFailureError,
    IntegrityFailureError,
    InvalidScopeError,
    InvalidSelectionError,
    RestoreError,
    ToolFailureError,
)
from wpbackup.backup.identity import host_from_url, resolve_identifier
from wpbackup.backup.naming import (
    ArtifactKind,
    BackupArtifact,
    artifact_name,
    format_timestamp,
    parse_timestamp,
)
from wpbackup.backup.producer import BackupProducer, BackupResult
from wpbackup.backup.restore import (
    DecisionProvider,
    RestoreOrchestrator,
    RestoreResult,
    RestoreScope,
    RestoreSelection,
    RestoreState,
)
from wpbackup.backup.session import BackupSession, SessionResult
from wpbackup.backup.verifier import IntegrityVerifier

__all__ = [
    # Naming
    "ArtifactKind",
    "BackupArtifact",
    "artifact_name",
    "format_timestamp",
    "parse_timestamp",
    # Catalog
    "BackupPair",
    "CatalogScan",
    "CatalogStatus",
    "list_pairs",
    "scan",
    # Components
    "BackupContext",
    "BackupProducer",
    "BackupResult",
    "BackupSession",
    "SessionResult",
    "IntegrityVerifier",
    "RestoreOrchestrator",
    "RestoreResult",
    "RestoreScope",
    "RestoreSelection",
    "RestoreState",
    "DecisionProvider",
    "resolve_identifier",
    "host_from_url",
    # Tools
    "DatabaseClient",
    "MysqlClient",
    "GzipCodec",
    "TarArchiver",
    # Errors
    "BackupError",
    "BackupFailureError",
    "IntegrityFailureError",
    "InvalidScopeError",
    "InvalidSelectionError",
    "RestoreError",
    "ToolFailureError",
]
