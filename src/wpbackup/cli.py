"""
Command-line interface for wpbackup.

Run from a WordPress root directory. With no command, existing backups are
offered for restore and a new backup is created otherwise.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

from wpbackup import __version__
from wpbackup.backup import (
    BackupContext,
    BackupError,
    BackupFailureError,
    BackupPair,
    BackupResult,
    BackupSession,
    CatalogScan,
    IntegrityVerifier,
    MysqlClient,
    RestoreResult,
    RestoreScope,
    resolve_identifier,
    scan,
)
from wpbackup.config import (
    ConfigurationError,
    Settings,
    WordPressConfig,
    load_config,
)

# Set up logging
logger = logging.getLogger(__name__)

# Global output setting (set during main() based on args)
_quiet_mode = False

SCOPE_CHOICES = {
    "both": RestoreScope.BOTH,
    "db": RestoreScope.DATABASE_ONLY,
    "files": RestoreScope.FILES_ONLY,
}

_YES_RE = re.compile(r"^[Yy]$")


def set_output_mode(quiet: bool = False) -> None:
    """
    Set the output mode for the CLI.

    Args:
        quiet: If True, suppress non-essential output.
    """
    global _quiet_mode
    _quiet_mode = quiet


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode (for essential output like JSON).
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def ask_yes_no(prompt: str) -> bool:
    """Ask a y/n question; only a single 'y' or 'Y' counts as yes."""
    return bool(_YES_RE.match(input(prompt).strip()))


def print_pairs(pairs: Sequence[BackupPair]) -> None:
    """Print numbered backup pairs, newest first."""
    for number, pair in enumerate(pairs, start=1):
        output(f"{number}. Timestamp: {pair.timestamp}")
        output(f"   Database: {pair.database.path}")
        output(f"   Files: {pair.files.path}")


class TerminalDecisions:
    """DecisionProvider that prompts on the terminal."""

    def __init__(self, uploads_subdir: str = "wp-content/uploads") -> None:
        self.uploads_subdir = uploads_subdir

    def choose_pair(self, pairs: Sequence[BackupPair]) -> str:
        output("Existing backup pairs found:")
        print_pairs(pairs)
        return input(
            "Do you want to restore from one of these backups? "
            "Enter the number (or 0 to skip): "
        )

    def choose_scope(self, pair: BackupPair) -> str:
        return input(
            "What do you want to restore? "
            "(1: Both DB and Files, 2: Only DB, 3: Only Files): "
        )

    def confirm_restore(self, pair: BackupPair, scope: RestoreScope) -> bool:
        return ask_yes_no("Confirm restore? This will overwrite selected components! (y/n): ")

    def include_uploads(self) -> bool:
        return ask_yes_no(
            f"Do you want to include the {self.uploads_subdir} directory "
            "in the files backup? (y/n): "
        )


class PresetDecisions(TerminalDecisions):
    """Answers taken from command-line flags, prompting for anything not given."""

    def __init__(
        self,
        uploads_subdir: str = "wp-content/uploads",
        index: int | None = None,
        scope: RestoreScope | None = None,
        force: bool = False,
        uploads: bool | None = None,
    ) -> None:
        super().__init__(uploads_subdir)
        self.index = index
        self.scope = scope
        self.force = force
        self.uploads = uploads

    def choose_pair(self, pairs: Sequence[BackupPair]) -> str:
        if self.index is None:
            return super().choose_pair(pairs)
        return str(self.index)

    def choose_scope(self, pair: BackupPair) -> str:
        if self.scope is None:
            return super().choose_scope(pair)
        return self.scope.value

    def confirm_restore(self, pair: BackupPair, scope: RestoreScope) -> bool:
        if self.force:
            return True
        return super().confirm_restore(pair, scope)

    def include_uploads(self) -> bool:
        if self.uploads is None:
            return super().include_uploads()
        return self.uploads


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the wpbackup CLI."""
    parser = argparse.ArgumentParser(
        prog="wpbackup",
        description="Back up and restore a WordPress database and file tree",
        epilog=(
            "Runs against the WordPress installation in --root (default: current "
            "directory). Do not run two instances against the same site at once."
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"wpbackup {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Settings file (default: <root>/.wpbackup.yaml)",
    )

    parser.add_argument(
        "--root",
        metavar="PATH",
        default=".",
        help="WordPress root directory (default: current directory)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Offer a restore, otherwise create a backup (default)",
        description="Offer existing backups for restore; create a new backup if none is restored.",
    )
    run_parser.set_defaults(func=cmd_run)

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List restorable backup pairs",
        description="Show complete database/files backup pairs, newest first.",
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    list_parser.set_defaults(func=cmd_list)

    # backup command
    backup_parser = subparsers.add_parser(
        "backup",
        help="Create a new backup pair",
        description="Dump the database and archive the site files, then verify both.",
    )
    uploads_group = backup_parser.add_mutually_exclusive_group()
    uploads_group.add_argument(
        "--include-uploads",
        action="store_true",
        dest="include_uploads",
        default=None,
        help="Include the uploads directory without asking",
    )
    uploads_group.add_argument(
        "--exclude-uploads",
        action="store_false",
        dest="include_uploads",
        default=None,
        help="Exclude the uploads directory without asking",
    )
    backup_parser.set_defaults(func=cmd_backup)

    # restore command
    restore_parser = subparsers.add_parser(
        "restore",
        help="Restore from a backup pair",
        description="Verify and restore a backup pair over the live site.",
    )
    restore_parser.add_argument(
        "--index",
        type=int,
        metavar="N",
        help="Pair number as shown by 'list' (1 is the newest)",
    )
    restore_parser.add_argument(
        "--scope",
        choices=sorted(SCOPE_CHOICES),
        help="What to restore: both, db or files",
    )
    restore_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    restore_parser.set_defaults(func=cmd_restore)

    # verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Check the integrity of a backup pair",
        description="Run the integrity checks on a pair without restoring it.",
    )
    verify_parser.add_argument(
        "--index",
        type=int,
        default=1,
        metavar="N",
        help="Pair number as shown by 'list' (default: 1, the newest)",
    )
    verify_parser.set_defaults(func=cmd_verify)

    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.WARNING
    elif verbose == 0:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_settings(args: argparse.Namespace) -> tuple[Path, Settings]:
    """Resolve the WordPress root and load settings for it."""
    root = Path(args.root).resolve()
    config_path = Path(args.config) if args.config else None
    settings = load_config(config_path, root=root)
    if not args.quiet and not args.verbose:
        logging.getLogger().setLevel(settings.log_level)
    return root, settings


def prepare(args: argparse.Namespace) -> tuple[Settings, BackupContext, MysqlClient]:
    """
    Read credentials and resolve the site identifier.

    Raises:
        ConfigurationError: If settings or wp-config.php are unusable.
    """
    root, settings = load_settings(args)
    wp_config = WordPressConfig(root / settings.wp_config)
    credentials = wp_config.credentials()

    context = BackupContext.from_settings(root, settings, credentials=credentials)
    client = MysqlClient.from_context(
        context, settings.mysql, timeout=settings.command_timeout
    )
    identifier = resolve_identifier(lambda: client.query_site_url(wp_config.table_prefix))

    return settings, context.with_identifier(identifier), client


def report_restore(result: RestoreResult) -> int:
    """Print the outcome of a restore and return the exit code."""
    if result.completed:
        for artifact in result.verified:
            output(f"{artifact.kind.label} backup integrity check passed.")
        for artifact in result.applied:
            output(f"{artifact.kind.label} restored from {artifact.name}")
        output("Restore process completed successfully.")
        return 0
    if result.failed:
        output_error(f"Error: {result.error}")
        return 1
    output("Restore cancelled.")
    return 0


def report_backup(result: BackupResult) -> None:
    """Print a summary of a new backup pair."""
    pair = result.pair
    output(f"Compressed database backup created: {pair.database.path}")
    output(f"  Size: {result.database_bytes:,} bytes")
    output(f"Files backup created: {pair.files.path}")
    output(f"  Size: {result.files_bytes:,} bytes ({result.files_entries} entries)")
    if not result.include_uploads:
        output("  Uploads directory excluded")
    output("Backup process and integrity checks completed successfully.")


def report_backup_failure(error: BackupFailureError) -> int:
    output_error(f"Error: {error}")
    if error.stage == "verify" and error.written:
        output_error("The following backup files exist but are NOT verified:")
        for path in error.written:
            output_error(f"  {path}")
    return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Offer a restore, otherwise create a backup."""
    settings, context, client = prepare(args)
    decisions = TerminalDecisions(settings.uploads_dir)
    session = BackupSession(context, client, decisions)

    try:
        result = session.run()
    except BackupFailureError as e:
        return report_backup_failure(e)

    if result.restored:
        return report_restore(result.restore)

    if result.backup is not None:
        report_backup(result.backup)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List restorable backup pairs."""
    _, context, _ = prepare(args)
    catalog: CatalogScan = scan(context.storage_dir, context.identifier)

    if args.json:
        data = [
            {
                "timestamp": pair.timestamp,
                "identifier": pair.identifier,
                "database": str(pair.database.path),
                "files": str(pair.files.path),
            }
            for pair in catalog.pairs
        ]
        output(json.dumps(data, indent=2), force=True)
        return 0

    if not catalog.has_pairs:
        output(f"No restorable backups in {catalog.storage_dir}")
        return 0

    print_pairs(catalog.pairs)
    if catalog.orphans:
        output()
        output(f"{len(catalog.orphans)} database backup(s) without a matching files backup ignored.")
    return 0


def cmd_backup(args: argparse.Namespace) -> int:
    """Create a new backup pair."""
    settings, context, client = prepare(args)
    decisions = PresetDecisions(settings.uploads_dir, uploads=args.include_uploads)
    session = BackupSession(context, client, decisions)

    try:
        result = session.backup()
    except BackupFailureError as e:
        return report_backup_failure(e)

    report_backup(result)
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore from a backup pair."""
    settings, context, client = prepare(args)
    decisions = PresetDecisions(
        settings.uploads_dir,
        index=args.index,
        scope=SCOPE_CHOICES[args.scope] if args.scope else None,
        force=args.force,
    )
    session = BackupSession(context, client, decisions)

    catalog = session.scan()
    if not catalog.has_pairs:
        output(f"No restorable backups in {catalog.storage_dir}")
        return 0

    return report_restore(session.restore(catalog))


def cmd_verify(args: argparse.Namespace) -> int:
    """Check the integrity of a backup pair."""
    _, context, _ = prepare(args)
    catalog = scan(context.storage_dir, context.identifier)

    if not catalog.has_pairs:
        output(f"No restorable backups in {catalog.storage_dir}")
        return 0

    if not 1 <= args.index <= len(catalog.pairs):
        output_error(f"Error: Backup selection {args.index} is out of range (1-{len(catalog.pairs)})")
        return 1

    pair = catalog.pairs[args.index - 1]
    output(f"Verifying backup pair {pair.timestamp}...")

    verifier = IntegrityVerifier()
    failed = False
    for artifact in (pair.database, pair.files):
        valid, errors = verifier.verify(artifact)
        if valid:
            output(f"{artifact.kind.label} backup integrity check passed.")
        else:
            failed = True
            output_error(f"Error: {artifact.kind.label} backup integrity check failed.")
            for error in errors:
                output_error(f"  - {error}")

    if failed:
        return 1
    output("Backup files are intact and ready for restore.")
    return 0


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Main entry point for the wpbackup CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Set up logging and output mode
    setup_logging(args.verbose, args.quiet)
    set_output_mode(args.quiet)

    func = getattr(args, "func", cmd_run)

    try:
        exit_code = func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        sys.exit(130)
    except EOFError:
        output_error("Error: No answer available for an interactive prompt.")
        sys.exit(1)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except BackupError as e:
        output_error(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        if args.verbose > 0:
            raise
        output_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
