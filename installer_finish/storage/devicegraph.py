"""Staging device graph as exported by the storage subsystem.

The storage subsystem owns the device graph; finish steps only need the
filesystems it is about to leave behind. It hands them over as JSON, either a
list of filesystem objects or an object with a "filesystems" list:

    {"filesystems": [
        {"device": "/dev/sda2", "type": "btrfs", "mount_point": "/",
         "mount_options": ["ro"], "exists_in_probed": false,
         "subvolumes_prefix": "@"}
    ]}
"""

from __future__ import annotations

import json
from pathlib import Path

from installer_finish.domain.models import FilesystemInfo
from installer_finish.exceptions import ConfigurationError
from installer_finish.logging import LoggerFactory


log = LoggerFactory.for_storage()


def load_staging_filesystems(path: str | Path | None) -> list[FilesystemInfo]:
    """Load the filesystems of the staging device graph.

    Returns an empty list when no path is configured.

    Raises:
        ConfigurationError: If the file cannot be read or has the wrong shape
    """
    if not path:
        log.debug("No staging device graph configured")
        return []
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        raise ConfigurationError(f"Cannot read device graph {path}: {error}") from error

    if isinstance(data, dict):
        data = data.get("filesystems", [])
    if not isinstance(data, list):
        raise ConfigurationError(f"Device graph {path} must hold a list of filesystems")

    try:
        filesystems = [FilesystemInfo.from_dict(item) for item in data]
    except (KeyError, TypeError, AttributeError) as error:
        raise ConfigurationError(f"Invalid filesystem entry in {path}: {error}") from error
    log.debug(f"Loaded {len(filesystems)} filesystems from {path}")
    return filesystems
