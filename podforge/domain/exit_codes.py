"""Standardized exit codes for podforge CLI commands.

Following POSIX conventions and common CLI practices.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes for podforge CLI commands."""

    SUCCESS = 0
    """Command completed, including batches with per-item failures."""

    USER_ERROR = 1
    """User error: invalid arguments, missing configuration."""

    SYSTEM_ERROR = 2
    """System error: board unreachable, rate log corrupt, disk failure."""

    INTERRUPTED = 130
    """User interrupted with SIGINT (Ctrl+C)."""
