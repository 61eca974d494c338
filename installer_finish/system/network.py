"""Copy the installer's network configuration into the target system."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable

from installer_finish.config.settings import DEFAULT_NETWORK_CONFIG_PATHS
from installer_finish.logging import LoggerFactory


log = LoggerFactory.for_system()


class NetworkConfigWriter:
    def __init__(
        self,
        destdir: str,
        source_root: str = "/",
        patterns: Iterable[str] = DEFAULT_NETWORK_CONFIG_PATHS,
    ):
        self.destdir = destdir
        self.source_root = source_root
        self.patterns = list(patterns)

    def save(self) -> list[str]:
        """Copy every existing file matching the patterns; returns relative paths copied."""
        source = Path(self.source_root)
        target = Path(self.destdir)
        if source.resolve() == target.resolve():
            log.info("Target is the running system, network configuration kept in place")
            return []

        copied: list[str] = []
        for pattern in self.patterns:
            for path in sorted(source.glob(pattern.lstrip("/"))):
                if not path.is_file():
                    continue
                relative = path.relative_to(source)
                destination = target / relative
                try:
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(path, destination)
                except OSError as error:
                    log.error(f"Cannot copy {relative} to the target: {error}")
                    continue
                copied.append(str(relative))
        if copied:
            log.info(f"Copied network configuration: {', '.join(copied)}")
        else:
            log.info("No network configuration found to copy")
        return copied
