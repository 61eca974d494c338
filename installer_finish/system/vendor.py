"""Driver update hooks and the optional product finish hook."""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Sequence

from installer_finish.exceptions import CommandFailedError
from installer_finish.logging import LoggerFactory

from .command import run_command


POST_SCRIPT = "install/update.post2"

log = LoggerFactory.for_system()


class DriverUpdate:
    """Runs the second post script of every applied driver update.

    Driver updates are unpacked to <update_dir>/<n>/ by the installer; their
    ``install/update.post2`` script is run with the target root as argument.
    """

    def __init__(self, destdir: str, update_dir: str = "/update"):
        self.destdir = destdir
        self.update_dir = update_dir

    def post_scripts(self) -> list[Path]:
        base = Path(self.update_dir)
        if not base.is_dir():
            return []
        return [
            script
            for script in sorted(base.glob(f"*/{POST_SCRIPT}"))
            if script.is_file() and os.access(script, os.X_OK)
        ]

    def run(self) -> int:
        """Run each post script once; returns how many succeeded."""
        scripts = self.post_scripts()
        if not scripts:
            log.info("No driver updates to finish")
            return 0
        succeeded = 0
        for script in scripts:
            try:
                run_command([str(script), self.destdir])
            except (CommandFailedError, OSError) as error:
                log.error(f"Driver update script {script} failed: {error}")
                continue
            succeeded += 1
        log.info(f"Driver update scripts run: {succeeded}/{len(scripts)}")
        return succeeded


class ProductFinishHook:
    """External product-specific finish command, told whether this is an update."""

    def __init__(self, command: str | Sequence[str], destdir: str):
        # A string from settings is split like a shell would
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        self.destdir = destdir

    def __call__(self, update: bool) -> bool:
        argv = [*self.command, "--destdir", self.destdir]
        if update:
            argv.append("--update")
        try:
            run_command(argv)
        except (CommandFailedError, OSError) as error:
            log.error(f"Product finish hook failed: {error}")
            return False
        return True
