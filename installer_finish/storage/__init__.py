"""Mount table, unmount sequencing and filesystem fixes for the target.

Main Functions:
    - read_mounts_file(): Parse /proc/mounts into MountEntry objects
    - collect_mounts(): Mounts below a root, deepest first
    - Unmounter: Single-pass unmount with reconciliation and reporting
    - set_btrfs_defaults_as_ro(): Read-only default subvolumes
    - fix_target_etc_mtab(): /etc/mtab symlink in the target
    - load_staging_filesystems(): Filesystems from the staging device graph
"""

from .btrfs import set_btrfs_defaults_as_ro
from .devicegraph import load_staging_filesystems
from .mounts import (
    PROC_MOUNTS,
    PROC_PARTITIONS,
    collect_mounts,
    dump_file,
    read_mounts_file,
)
from .mtab import fix_target_etc_mtab
from .unmounter import Unmounter


__all__ = [
    "PROC_MOUNTS",
    "PROC_PARTITIONS",
    "Unmounter",
    "collect_mounts",
    "dump_file",
    "fix_target_etc_mtab",
    "load_staging_filesystems",
    "read_mounts_file",
    "set_btrfs_defaults_as_ro",
]
