"""Enumerations for CLI exit codes shared by every workflow."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Well-known exit codes enforced across the CLI."""

    OK = 0
    FAILURE = 1
    MISSING_TOOL = 127
    INTERRUPTED = 130
    TERMINATED = 143
