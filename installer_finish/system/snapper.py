"""Root filesystem snapshots of the target via the snapper CLI."""

from __future__ import annotations

from pathlib import Path

from installer_finish.exceptions import CommandFailedError, SnapshotError
from installer_finish.logging import LoggerFactory

from .command import run_on_target


SNAPPER_CONFIGS_DIR = "etc/snapper/configs"
SNAPSHOT_STORE_DIR = "var/lib/installer-finish/snapshots"

log = LoggerFactory.for_system()


class Snapper:
    def __init__(self, destdir: str, config: str = "root"):
        self.destdir = destdir
        self.config = config

    def configured(self) -> bool:
        return (Path(self.destdir) / SNAPPER_CONFIGS_DIR / self.config).is_file()

    def _create(
        self,
        snapshot_type: str,
        description: str,
        cleanup: str,
        important: bool,
        pre_number: int | None = None,
    ) -> int:
        argv = [
            "snapper",
            "--no-dbus",
            "-c",
            self.config,
            "create",
            "--type",
            snapshot_type,
            "--description",
            description,
            "--cleanup-algorithm",
            cleanup,
            "--print-number",
        ]
        if pre_number is not None:
            argv += ["--pre-number", str(pre_number)]
        if important:
            argv += ["--userdata", "important=yes"]
        try:
            result = run_on_target(self.destdir, argv)
        except (CommandFailedError, OSError) as error:
            raise SnapshotError(f"snapper create {snapshot_type} failed: {error}") from error
        try:
            number = int((result.stdout or "").strip())
        except ValueError:
            raise SnapshotError(
                f"snapper printed no snapshot number: {result.stdout!r}"
            ) from None
        log.info(f"Created {snapshot_type} snapshot {number} ({description})")
        return number

    def create_single(self, description: str, cleanup: str = "number", important: bool = False) -> int:
        return self._create("single", description, cleanup, important)

    def create_post(
        self,
        description: str,
        pre_number: int,
        cleanup: str = "number",
        important: bool = False,
    ) -> int:
        return self._create("post", description, cleanup, important, pre_number)


class SnapshotStore:
    """Pre-snapshot numbers the update workflow left in the target for finishing."""

    def __init__(self, destdir: str):
        self.directory = Path(destdir) / SNAPSHOT_STORE_DIR

    def _path(self, name: str) -> Path:
        return self.directory / f"pre_snapshot_{name}.txt"

    def load(self, name: str) -> int | None:
        try:
            return int(self._path(name).read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def clean(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)
