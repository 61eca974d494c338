from __future__ import annotations

import os
from typing import Any, Mapping

from installer_finish.domain.models import InstallContext, InstallMode, StepKind
from installer_finish.system.kernel import KernelModules, ModulesConfig

from .base import FinishStep


SGI_SN_PATH = "/proc/sgi_sn"
SGI_ALTIX_MODULES = ("fetchop", "mmtimer")


class KernelFinish(FinishStep):
    kind = StepKind.KERNEL
    title = "Updating kernel module dependencies..."
    modes = (InstallMode.INSTALL, InstallMode.UPDATE, InstallMode.AUTOINST)

    def __init__(
        self,
        context: InstallContext,
        modules_conf: ModulesConfig | None = None,
        kernel: KernelModules | None = None,
        sgi_sn_path: str = SGI_SN_PATH,
    ):
        super().__init__(context)
        self.modules_conf = modules_conf or ModulesConfig(context.destdir)
        self.kernel = kernel or KernelModules(context.destdir)
        self.sgi_sn_path = sgi_sn_path

    @classmethod
    def from_settings(cls, context: InstallContext, values: Mapping[str, Any]) -> KernelFinish:
        return cls(
            context,
            modules_conf=ModulesConfig(context.destdir, values.get("kernel_module_options")),
            kernel=KernelModules(context.destdir, values.get("modules_to_load") or ()),
        )

    def is_sgi_altix(self) -> bool:
        try:
            return os.path.getsize(self.sgi_sn_path) > 0
        except OSError:
            return False

    def write(self, params: Mapping[str, Any]) -> bool | None:
        success = True
        try:
            self.modules_conf.save(force=True)
        except OSError as error:
            self.log.error(f"Cannot save kernel module options: {error}")
            success = False

        if self.is_sgi_altix():
            self.log.info("found SGI Altix, adding fetchop and mmtimer")
            for module in SGI_ALTIX_MODULES:
                self.kernel.add_module_to_load(module)

        try:
            self.kernel.save_modules_to_load()
        except OSError as error:
            self.log.error(f"Cannot save modules to load at boot: {error}")
            success = False
        return None if success else False
