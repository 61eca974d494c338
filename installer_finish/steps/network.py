from __future__ import annotations

from typing import Any, Mapping

from installer_finish.config.settings import DEFAULT_NETWORK_CONFIG_PATHS
from installer_finish.domain.models import InstallContext, InstallMode, StepKind
from installer_finish.system.kernel import ModulesConfig
from installer_finish.system.network import NetworkConfigWriter

from .base import FinishStep


class NetworkFinish(FinishStep):
    kind = StepKind.NETWORK
    title = "Saving network configuration..."
    modes = (InstallMode.INSTALL, InstallMode.AUTOINST)

    def __init__(
        self,
        context: InstallContext,
        network_writer: NetworkConfigWriter | None = None,
        modules_conf: ModulesConfig | None = None,
    ):
        super().__init__(context)
        self.network_writer = network_writer or NetworkConfigWriter(context.destdir)
        self.modules_conf = modules_conf or ModulesConfig(context.destdir)

    @classmethod
    def from_settings(cls, context: InstallContext, values: Mapping[str, Any]) -> NetworkFinish:
        patterns = values.get("network_config_paths") or DEFAULT_NETWORK_CONFIG_PATHS
        return cls(
            context,
            network_writer=NetworkConfigWriter(context.destdir, patterns=patterns),
        )

    def write(self, params: Mapping[str, Any]) -> None:
        self.log.info("Save network configuration")
        self.network_writer.save()
        # not forced: only kernels with stale module data
        self.modules_conf.run_depmod(force=False)
        return None
