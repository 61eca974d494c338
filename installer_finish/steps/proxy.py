from __future__ import annotations

from typing import Any, Mapping

from installer_finish.domain.models import InstallContext, InstallMode, Stage, StepKind
from installer_finish.system.proxy import ProxyConfig

from .base import FinishStep


class ProxyFinish(FinishStep):
    kind = StepKind.PROXY
    title = "Saving proxy configuration..."
    modes = (InstallMode.INSTALL, InstallMode.UPDATE, InstallMode.AUTOINST)

    def __init__(self, context: InstallContext, proxy: ProxyConfig | None = None):
        super().__init__(context)
        self.proxy = proxy or ProxyConfig(context.destdir)

    @classmethod
    def from_settings(cls, context: InstallContext, values: Mapping[str, Any]) -> ProxyFinish:
        return cls(
            context,
            proxy=ProxyConfig(context.destdir, to_target=bool(values.get("proxy_to_target"))),
        )

    def write(self, params: Mapping[str, Any]) -> bool | None:
        if self.context.stage is not Stage.INITIAL or not self.proxy.to_target:
            self.log.debug("Proxy settings stay in the installer")
            return None

        proxy_settings = self.proxy.export()
        self.log.info(
            f"Writing proxy settings to the target system: {proxy_settings.redacted()}"
        )
        self.proxy.import_(proxy_settings)
        try:
            self.proxy.write_sysconfig()
            self.proxy.write_curlrc()
        except OSError as error:
            self.log.error(f"Cannot write proxy configuration to the target: {error}")
            return False
        return None
