"""Mount table reading.

The live mount table is the only source of truth for what is mounted below
the target root: other processes (snapper, package scripts) mount things
without the installer knowing. Nothing here caches; every call reads the file
again.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from installer_finish.domain.models import MountEntry, is_under, normalize_path
from installer_finish.logging import LoggerFactory


PROC_MOUNTS = "/proc/mounts"
PROC_PARTITIONS = "/proc/partitions"

log = LoggerFactory.for_storage()
dump_log = LoggerFactory.for_dump()


def read_mounts_file(path: str | Path = PROC_MOUNTS) -> list[MountEntry]:
    """Parse a mounts file into entries, in file order."""
    entries: list[MountEntry] = []
    with open(path, "r", encoding="utf-8", errors="replace") as mounts_file:
        for line in mounts_file:
            entry = MountEntry.from_mounts_line(line)
            if entry is None:
                continue
            log.trace(f"mount entry: {entry.device} on {entry.mount_point}")
            entries.append(entry)
    return entries


def mounts_under(entries: Iterable[MountEntry], root: str) -> list[MountEntry]:
    """Entries whose mount point is root itself or below it."""
    root = normalize_path(root)
    return [entry for entry in entries if is_under(entry.mount_point, root)]


def order_for_unmount(entries: Iterable[MountEntry]) -> list[MountEntry]:
    """Deepest mount point first; among equal depths, later mounts first."""
    indexed = list(enumerate(entries))
    indexed.sort(key=lambda item: (item[1].depth, item[0]), reverse=True)
    return [entry for _index, entry in indexed]


def collect_mounts(root: str, mounts_file: str | Path = PROC_MOUNTS) -> list[MountEntry]:
    """Read the mount table and return what has to be unmounted below root, in order."""
    return order_for_unmount(mounts_under(read_mounts_file(mounts_file), root))


def dump_file(filename: str | Path) -> None:
    """Write a file verbatim to the log so it can be read without line prefixes."""
    try:
        content = Path(filename).read_text(encoding="utf-8", errors="replace")
    except OSError as error:
        log.warning(f"Cannot dump {filename}: {error}")
        return
    dump_log.info(f"\n\n{filename}:\n\n{content}\n")
