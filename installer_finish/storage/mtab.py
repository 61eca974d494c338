"""/etc/mtab handling in the target system."""

from __future__ import annotations

import os
from pathlib import Path

from installer_finish.logging import LoggerFactory


MTAB_LINK_TARGET = "/proc/self/mounts"

log = LoggerFactory.for_storage()


def fix_target_etc_mtab(destdir: str) -> bool:
    """Replace a faked <destdir>/etc/mtab by a symlink to /proc/self/mounts.

    The installer writes a regular mtab for package scripts. A symlink is
    already correct and is left alone.

    Returns:
        True when the file was replaced
    """
    mtab = Path(destdir) / "etc" / "mtab"
    if mtab.is_symlink():
        log.info(f"{mtab} is already a symlink, keeping it")
        return False
    try:
        if mtab.exists():
            mtab.unlink()
        os.symlink(MTAB_LINK_TARGET, mtab)
    except OSError as error:
        log.error(f"Cannot recreate {mtab} as symlink: {error}")
        return False
    log.info(f"Recreated {mtab} as symlink to {MTAB_LINK_TARGET}")
    return True
