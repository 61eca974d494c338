"""Read-only root subvolumes for btrfs filesystems mounted ``ro``.

Packages had to be installed into the target, so a filesystem meant to be
read-only could not be made so when it was created. The property is set at
the very end instead: the filesystem must still be mounted (the btrfs tool
needs that) and nothing may write to it afterwards.
"""

from __future__ import annotations

from typing import Iterable

from installer_finish.domain.models import FilesystemInfo
from installer_finish.exceptions import CommandFailedError, PropertySetError
from installer_finish.logging import LoggerFactory
from installer_finish.system.command import run_on_target


# Name btrfs tools use for the top-level tree when no default subvolume is set
BTRFS_FS_TREE = "(FS_TREE)"

log = LoggerFactory.for_storage()


def read_only_btrfs_filesystems(filesystems: Iterable[FilesystemInfo]) -> list[FilesystemInfo]:
    """New btrfs filesystems that are mounted with the ``ro`` option."""
    return [fs for fs in filesystems if fs.is_new and fs.is_read_only_btrfs]


def default_subvolume(destdir: str, mount_point: str) -> str:
    """Path of the default subvolume, or "" when it is the top-level tree."""
    result = run_on_target(
        destdir, ["btrfs", "subvolume", "get-default", mount_point]
    )
    tokens = (result.stdout or "").strip().split()
    if not tokens or tokens[-1] == BTRFS_FS_TREE:
        return ""
    return tokens[-1]


def default_subvolume_as_ro(destdir: str, fs: FilesystemInfo) -> str:
    """Set the read-only property on the default subvolume of fs.

    Returns:
        The subvolume path the property was set on

    Raises:
        PropertySetError: If either btrfs call fails
    """
    try:
        subvolume = default_subvolume(destdir, fs.mount_point)
        subvolume_path = fs.btrfs_subvolume_mount_point(subvolume)
        log.info(f"Setting root subvol read-only property on {subvolume_path}")
        run_on_target(
            destdir, ["btrfs", "property", "set", subvolume_path, "ro", "true"]
        )
    except (CommandFailedError, OSError, ValueError) as error:
        raise PropertySetError(fs.mount_point or fs.device, str(error)) from error
    return subvolume_path


def set_btrfs_defaults_as_ro(destdir: str, filesystems: Iterable[FilesystemInfo]) -> list[str]:
    """Make the default subvolume read-only on every qualifying filesystem.

    Each filesystem is handled once. A failure is logged and does not stop
    the remaining filesystems.

    Returns:
        Subvolume paths that are now read-only
    """
    done: list[str] = []
    for fs in read_only_btrfs_filesystems(filesystems):
        try:
            done.append(default_subvolume_as_ro(destdir, fs))
        except PropertySetError as error:
            log.error(str(error))
    return done
