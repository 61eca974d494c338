"""External command execution with consistent logging.

Every finish step shells out through run_command() so commands, their output
and their failures end up in the log the same way. Commands are blocking and
have no timeout: a hanging tool blocks the step.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from typing import Mapping, Sequence

from installer_finish.exceptions import CommandFailedError, PermissionFailureError
from installer_finish.logging import LoggerFactory


log = LoggerFactory.for_system()

PERMISSION_MARKERS = (
    "must be superuser",
    "operation not permitted",
    "permission denied",
    "only root can",
)


def format_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(part) for part in command)


def is_permission_failure(stderr: str) -> bool:
    lowered = (stderr or "").lower()
    return any(marker in lowered for marker in PERMISSION_MARKERS)


def run_command(
    command: Sequence[str],
    check: bool = True,
    log_output: bool = True,
    log_command: bool = True,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess:
    """Run a command and capture its output.

    Args:
        command: Argument list, never passed through a shell
        check: Raise when the command exits non-zero
        log_output: Log stdout/stderr at debug level
        log_command: Log the command line before running it
        env: Extra environment variables layered over os.environ

    Raises:
        PermissionFailureError: If the command failed for lack of privileges
        CommandFailedError: If the command failed for any other reason
        FileNotFoundError: If the executable does not exist
    """
    argv = list(command)
    if log_command:
        log.debug(f"Running command: {format_command(argv)}")
    result = subprocess.run(
        argv,
        check=False,
        text=True,
        capture_output=True,
        env=dict(os.environ, **env) if env else None,
    )
    if result.stdout and (log_output or result.returncode != 0):
        log.debug(f"stdout: {result.stdout.strip()}")
    if result.stderr and (log_output or result.returncode != 0):
        log.debug(f"stderr: {result.stderr.strip()}")
    if check and result.returncode != 0:
        stderr = (result.stderr or "").strip()
        if is_permission_failure(stderr):
            raise PermissionFailureError(argv, result.returncode, stderr)
        raise CommandFailedError(argv, result.returncode, stderr)
    return result


def target_command(destdir: str, command: Sequence[str]) -> list[str]:
    """Wrap a command so it runs inside the target system."""
    if destdir in ("", "/"):
        return list(command)
    return ["chroot", destdir, *command]


def run_on_target(destdir: str, command: Sequence[str], **kwargs) -> subprocess.CompletedProcess:
    """Run a command chrooted into destdir (directly when destdir is /)."""
    return run_command(target_command(destdir, command), **kwargs)
