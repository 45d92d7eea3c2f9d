"""
Entry point for running wpbackup as a module.

Usage:
    python -m wpbackup [command] [options]

This allows wpbackup to be executed directly as a Python module,
which is useful for development and testing without installing
the package.
"""

from wpbackup.cli import main

if __name__ == "__main__":
    main()
