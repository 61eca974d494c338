"""Finish step taking a snapper snapshot of the freshly installed root."""

from __future__ import annotations

from typing import Any, Mapping

from installer_finish.domain.models import InstallContext, InstallMode, StepKind
from installer_finish.exceptions import SnapshotError
from installer_finish.system.snapper import Snapper, SnapshotStore

from .base import FinishStep


UPDATE_SNAPSHOT = "update"


class SnapshotsFinish(FinishStep):
    kind = StepKind.SNAPSHOTS
    title = "Creating root filesystem snapshot..."
    modes = (InstallMode.INSTALL, InstallMode.UPDATE, InstallMode.AUTOINST)

    def __init__(
        self,
        context: InstallContext,
        snapper: Snapper | None = None,
        store: SnapshotStore | None = None,
        second_stage_required: bool = False,
    ):
        super().__init__(context)
        self.snapper = snapper or Snapper(context.destdir)
        self.store = store or SnapshotStore(context.destdir)
        self.second_stage_required = second_stage_required

    @classmethod
    def from_settings(cls, context: InstallContext, values: Mapping[str, Any]) -> SnapshotsFinish:
        return cls(
            context,
            snapper=Snapper(context.destdir, values.get("snapper_config") or "root"),
            second_stage_required=bool(values.get("second_stage_required")),
        )

    def write(self, params: Mapping[str, Any]) -> bool:
        """Create the snapshot; returns whether one was created.

        With a second stage ahead the snapshot is taken at its end instead.
        """
        if self.second_stage_required:
            self.log.info("Second stage is required, no snapshot now")
            return False
        if not self.snapper.configured():
            self.log.info("Snapper is not configured, no snapshot")
            return False

        try:
            if self.context.mode is InstallMode.UPDATE:
                self.create_post_update_snapshot()
            else:
                self.snapper.create_single(
                    "after installation", cleanup="number", important=True
                )
        except SnapshotError as error:
            self.log.error(f"Filesystem snapshot could not be created: {error}")
            return False
        return True

    def create_post_update_snapshot(self) -> int:
        pre_number = self.store.load(UPDATE_SNAPSHOT)
        if pre_number is None:
            raise SnapshotError("no pre-update snapshot number stored")
        number = self.snapper.create_post(
            "after update", pre_number, cleanup="number", important=True
        )
        self.store.clean(UPDATE_SNAPSHOT)
        return number
