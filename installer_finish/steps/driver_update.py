from __future__ import annotations

from typing import Any, Callable, Mapping

from installer_finish.config.settings import DEFAULT_DRIVER_UPDATE_DIR
from installer_finish.domain.models import InstallContext, InstallMode, StepKind
from installer_finish.system.vendor import DriverUpdate, ProductFinishHook

from .base import FinishStep


class DriverUpdateFinish(FinishStep):
    """Finishes driver updates; contributes no progress step of its own."""

    kind = StepKind.DRIVER_UPDATE
    steps = 0
    modes = (InstallMode.INSTALL, InstallMode.UPDATE, InstallMode.AUTOINST)

    def __init__(
        self,
        context: InstallContext,
        driver_update: DriverUpdate | None = None,
        product_finish: Callable[[bool], Any] | None = None,
    ):
        super().__init__(context)
        self.driver_update = driver_update or DriverUpdate(context.destdir)
        self.product_finish = product_finish

    @classmethod
    def from_settings(cls, context: InstallContext, values: Mapping[str, Any]) -> DriverUpdateFinish:
        command = values.get("product_finish_command")
        return cls(
            context,
            driver_update=DriverUpdate(
                context.destdir, values.get("driver_update_dir") or DEFAULT_DRIVER_UPDATE_DIR
            ),
            product_finish=ProductFinishHook(command, context.destdir) if command else None,
        )

    def write(self, params: Mapping[str, Any]) -> None:
        self.driver_update.run()

        if self.product_finish is not None:
            self.product_finish(self.context.mode is InstallMode.UPDATE)
        return None
