"""
Pytest configuration and shared fixtures for installer-finish tests.

This module provides a fake mount table that reacts to ``umount`` calls, a
target root directory and a loguru sink collecting log messages.
"""

import subprocess
import sys
from pathlib import Path
from typing import Iterable, List

import pytest
from loguru import logger

from installer_finish.domain.models import InstallContext, InstallMode, Stage
from installer_finish.exceptions import CommandFailedError, PermissionFailureError


# ==============================================================================
# Mount Table Fixtures
# ==============================================================================


class FakeMountTable:
    """A mounts file on disk plus a run_command replacement acting on it.

    ``umount <path>`` removes the last entry for path unless the path is in
    ``fail`` (umount errors, entry stays), ``stuck`` (umount reports success,
    entry stays), ``denied`` (permission error) or ``vanish`` (umount errors
    but the entry disappears anyway).
    """

    def __init__(
        self,
        path: Path,
        mount_points: Iterable[str],
        unrelated: Iterable[str] = ("/", "/proc", "/sys"),
        fail: Iterable[str] = (),
        stuck: Iterable[str] = (),
        denied: Iterable[str] = (),
        vanish: Iterable[str] = (),
    ):
        self.path = path
        self.mounted: List[str] = [*unrelated, *mount_points]
        self.fail = set(fail)
        self.stuck = set(stuck)
        self.denied = set(denied)
        self.vanish = set(vanish)
        self.calls: List[List[str]] = []
        self.write()

    def write(self) -> None:
        lines = [
            f"/dev/vda{index} {mount_point} ext4 rw,relatime 0 0"
            for index, mount_point in enumerate(self.mounted)
        ]
        self.path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    def _remove(self, mount_point: str) -> None:
        index = len(self.mounted) - 1 - self.mounted[::-1].index(mount_point)
        del self.mounted[index]
        self.write()

    def run_command(self, command, check=True, **kwargs):
        command = list(command)
        self.calls.append(command)
        if command[0] == "umount":
            target = command[1]
            if target in self.denied:
                raise PermissionFailureError(command, 32, "must be superuser to unmount")
            if target in self.fail:
                raise CommandFailedError(command, 32, "target is busy")
            if target in self.vanish:
                self._remove(target)
                raise CommandFailedError(command, 32, "target is busy")
            if target not in self.stuck:
                self._remove(target)
        return subprocess.CompletedProcess(command, 0, "", "")

    @property
    def umount_calls(self) -> List[str]:
        return [call[1] for call in self.calls if call[0] == "umount"]


@pytest.fixture
def mounts_file(tmp_path) -> Path:
    return tmp_path / "mounts"


@pytest.fixture
def make_mount_table(mounts_file):
    """Factory fixture building a FakeMountTable on the mounts_file path."""

    def _make(mount_points, **kwargs) -> FakeMountTable:
        return FakeMountTable(mounts_file, mount_points, **kwargs)

    return _make


# ==============================================================================
# Target System Fixtures
# ==============================================================================


@pytest.fixture
def target_root(tmp_path) -> Path:
    """An empty target system with an /etc directory."""
    root = tmp_path / "target"
    (root / "etc").mkdir(parents=True)
    return root


@pytest.fixture
def install_context(target_root) -> InstallContext:
    return InstallContext(
        destdir=str(target_root), mode=InstallMode.INSTALL, stage=Stage.INITIAL
    )


# ==============================================================================
# Logging Fixtures
# ==============================================================================


@pytest.fixture
def log_messages() -> List[str]:
    """Collect every loguru message emitted during the test."""
    messages: List[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="TRACE"
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def reset_logging():
    """Restore a plain stderr handler after tests that call setup_logging()."""
    yield
    logger.remove()
    logger.configure(extra={})
    logger.add(sys.stderr)
