"""Custom exceptions for finish steps.

This module defines a hierarchy of exceptions for the finish steps so callers
can tell a missing privilege from a failed command or a bad setting.

Exception Hierarchy:
    FinishError (base)
        ├── UnknownOperationError
        ├── ConfigurationError
        ├── CommandFailedError
        │   └── PermissionFailureError
        ├── MountError
        │   └── PartialUnmountError
        ├── PropertySetError
        └── SnapshotError

Usage:
    from installer_finish.exceptions import UnknownOperationError

    if function not in SUPPORTED:
        raise UnknownOperationError(function)
"""

from __future__ import annotations

from typing import Sequence


class FinishError(Exception):
    """Base exception for all finish step failures."""


class UnknownOperationError(FinishError):
    """A step was called with a function name it does not implement."""

    def __init__(self, function: object):
        self.function = function
        super().__init__(f"unknown function: {function}")


class ConfigurationError(FinishError):
    """Settings or the installation context are invalid."""


class CommandFailedError(FinishError):
    """An external command exited with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        msg = f"Command failed ({returncode}): {' '.join(self.argv)}"
        if stderr:
            msg += f": {stderr}"
        super().__init__(msg)


class PermissionFailureError(CommandFailedError):
    """An external command failed because of insufficient privileges."""


class MountError(FinishError):
    """Base exception for mount-related errors."""


class PartialUnmountError(MountError):
    """Some mount points under the target root are still mounted."""

    def __init__(self, leftover: Sequence[str]):
        self.leftover = list(leftover)
        super().__init__(
            "Leftover paths that could not be unmounted: " + ", ".join(self.leftover)
        )


class PropertySetError(FinishError):
    """Setting the read-only property on a btrfs subvolume failed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to set read-only property on {path}: {reason}")


class SnapshotError(FinishError):
    """Snapper could not create the requested snapshot."""
