"""
wpbackup - paired database and file backups for WordPress

Run from a WordPress root directory, wpbackup reads the database
credentials from wp-config.php, offers existing backups for restore, and
otherwise writes a new timestamped pair of artifacts:

    backups/backup-<site>-db-<timestamp>.sql.gz
    backups/backup-<site>-files-<timestamp>.tar.gz

Key Features:
    - Backups namespaced by the site's own address, so several sites can
      share a backup directory
    - Database dump compressed while streaming, never staged uncompressed
    - Integrity check after every backup and before every restore
    - Restore of the database, the files, or both
    - Optional exclusion of the uploads directory
"""

__version__ = "0.1.0"

from wpbackup.config.settings import Settings, load_config

__all__ = [
    "__version__",
    "Settings",
    "load_config",
]
