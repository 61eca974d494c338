"""Finish step unmounting everything below the target root."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Mapping

from installer_finish.config.settings import DEFAULT_STANDALONE_DESTDIR
from installer_finish.domain.models import (
    FilesystemInfo,
    InstallContext,
    InstallMode,
    StepKind,
    UnmountResult,
)
from installer_finish.exceptions import ConfigurationError
from installer_finish.storage import (
    PROC_MOUNTS,
    PROC_PARTITIONS,
    Unmounter,
    dump_file,
    fix_target_etc_mtab,
    load_staging_filesystems,
    set_btrfs_defaults_as_ro,
)

from .base import FinishStep


FilesystemsLoader = Callable[[], list[FilesystemInfo]]


class UmountFinish(FinishStep):
    kind = StepKind.UMOUNT
    title = "Unmounting all mounted devices..."
    modes = (
        InstallMode.INSTALL,
        InstallMode.LIVE_INSTALL,
        InstallMode.UPDATE,
        InstallMode.AUTOINST,
    )

    def __init__(
        self,
        context: InstallContext,
        filesystems: FilesystemsLoader | None = None,
        mounts_file: str | Path = PROC_MOUNTS,
        partitions_file: str | Path = PROC_PARTITIONS,
    ):
        super().__init__(context)
        self.load_filesystems = filesystems or (lambda: [])
        self.mounts_file = mounts_file
        self.partitions_file = partitions_file

    @classmethod
    def from_settings(cls, context: InstallContext, values: Mapping[str, Any]) -> UmountFinish:
        path = values.get("staging_devicegraph_path")
        return cls(context, filesystems=lambda: load_staging_filesystems(path))

    @classmethod
    def standalone(cls, context: InstallContext, **kwargs) -> UmountFinish:
        """Step for a manual run outside the installer.

        A destdir of / is replaced by /mnt and the btrfs read-only step is
        skipped, so the developer's own root is never touched.
        """
        destdir = context.destdir
        if destdir == "/":
            destdir = DEFAULT_STANDALONE_DESTDIR
        return cls(replace(context, destdir=destdir, running_standalone=True), **kwargs)

    def write(self, params: Mapping[str, Any]) -> bool:
        self.log.info("Starting umount_finish")

        fix_target_etc_mtab(self.destdir)
        # No write access to the target after this
        self.set_btrfs_defaults_as_ro()
        self.umount_target_mounts()

        self.log.info("umount_finish done")
        return True

    def set_btrfs_defaults_as_ro(self) -> list[str]:
        # Needs root and would turn a developer's own root subvolume read-only.
        if self.context.running_standalone:
            return []
        try:
            filesystems = self.load_filesystems()
        except ConfigurationError as error:
            self.log.error(f"Cannot read the staging device graph: {error}")
            return []
        return set_btrfs_defaults_as_ro(self.destdir, filesystems)

    def umount_target_mounts(self) -> UnmountResult:
        """Unmount all mounts below the target, reading /proc/mounts directly.

        Other processes (snapper, package scripts) may have mounted
        filesystems the storage subsystem does not know about.
        """
        dump_file(self.partitions_file)
        dump_file(self.mounts_file)
        unmounter = Unmounter(self.destdir, self.mounts_file)
        try:
            entries = unmounter.collect()
        except OSError as error:
            self.log.error(f"Cannot read the mount table {self.mounts_file}: {error}")
            return UnmountResult()
        self.log.info(f"Paths to unmount: {[entry.mount_point for entry in entries]}")
        if not entries:
            return UnmountResult()

        result = unmounter.execute(entries)
        unmounter.report(result)
        return result
