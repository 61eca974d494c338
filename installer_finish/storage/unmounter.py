"""Unmount everything mounted below the target root.

One pass per run:

1. Collect: read the mount table, keep entries at or below the root,
   deepest first.
2. Attempt: ``umount`` each path once; a failure is logged and the loop
   moves on.
3. Reconcile: read the mount table again; whatever is still below the root
   is leftover, whether or not its umount call reported an error.
4. Report: log leftovers together with the processes holding them.

Nothing is retried.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from installer_finish.domain.models import MountEntry, UnmountResult, normalize_path
from installer_finish.exceptions import (
    CommandFailedError,
    PartialUnmountError,
    PermissionFailureError,
)
from installer_finish.logging import LoggerFactory
from installer_finish.system.command import run_command

from .mounts import PROC_MOUNTS, collect_mounts, dump_file


log = LoggerFactory.for_umount()


def running_processes(mount_points: Sequence[str]) -> str:
    """Return ``fuser -v -m`` output for the given paths (details come on stderr)."""
    try:
        result = run_command(
            ["fuser", "-v", "-m", *mount_points],
            check=False,
            log_output=False,
            env={"LC_ALL": "C"},
        )
    except OSError as error:
        return f"fuser failed: {error}"
    return ((result.stdout or "") + (result.stderr or "")).strip()


class Unmounter:
    """Single-pass unmount of all mounts below a root directory."""

    def __init__(self, root: str, mounts_file: str | Path = PROC_MOUNTS):
        self.root = normalize_path(root)
        self.mounts_file = mounts_file

    def collect(self) -> list[MountEntry]:
        """Mounts below the root, deepest first, read fresh from the mount table."""
        return collect_mounts(self.root, self.mounts_file)

    def unmount_paths(self) -> list[str]:
        return [entry.mount_point for entry in self.collect()]

    def unmount(self, mount_point: str) -> bool:
        """Unmount one path; returns False instead of raising on failure."""
        try:
            run_command(["umount", mount_point])
        except PermissionFailureError as error:
            log.error(f"No permission to unmount {mount_point}: {error}")
            return False
        except CommandFailedError as error:
            log.warning(f"Failed to unmount {mount_point}: {error}")
            return False
        except OSError as error:
            log.error(f"Cannot run umount for {mount_point}: {error}")
            return False
        log.debug(f"Unmounted {mount_point}")
        return True

    def execute(self, entries: Sequence[MountEntry] | None = None) -> UnmountResult:
        """Run Attempt and Reconcile over the collected mounts.

        Args:
            entries: Already collected mounts; collected now when omitted
        """
        if entries is None:
            entries = self.collect()
        attempted: list[str] = []
        failed: list[str] = []
        for entry in entries:
            attempted.append(entry.mount_point)
            if not self.unmount(entry.mount_point):
                failed.append(entry.mount_point)

        try:
            leftover = tuple(self.unmount_paths())
        except OSError as error:
            # Without a mount table the umount exit statuses are all there is
            log.error(f"Cannot re-read {self.mounts_file}: {error}")
            return UnmountResult(attempted=tuple(attempted), leftover=tuple(failed))
        recovered = [path for path in failed if path not in leftover]
        if recovered:
            log.info(f"Paths unmounted despite umount errors: {recovered}")
        return UnmountResult(attempted=tuple(attempted), leftover=leftover)

    def report(self, result: UnmountResult) -> None:
        """Write a summary of the unmount pass to the log."""
        if result.success:
            log.info("All unmounts successful.")
            return
        log.warning(str(PartialUnmountError(result.leftover)))
        processes = running_processes(result.leftover)
        log.warning(
            f"\n\nRunning processes using {list(result.leftover)}:\n{processes}\n"
        )
        dump_file(self.mounts_file)
