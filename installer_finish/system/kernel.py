"""Kernel module configuration written into the target system."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping

from installer_finish.exceptions import CommandFailedError
from installer_finish.logging import LoggerFactory

from .command import run_on_target


MODPROBE_CONF = "etc/modprobe.d/50-installer.conf"
MODULES_LOAD_DIR = "etc/modules-load.d"
KERNEL_MODULE_DIRS = ("lib/modules", "usr/lib/modules")

log = LoggerFactory.for_system()


class ModulesConfig:
    """Module options (modprobe.d) and module dependency data of the target."""

    def __init__(self, destdir: str, options: Mapping[str, str] | None = None):
        self.destdir = destdir
        self.options = dict(options or {})

    @property
    def conf_path(self) -> Path:
        return Path(self.destdir) / MODPROBE_CONF

    def render(self) -> str:
        lines = ["# Module options collected during installation"]
        for module in sorted(self.options):
            lines.append(f"options {module} {self.options[module]}")
        return "\n".join(lines) + "\n"

    def save(self, force: bool = False) -> bool:
        """Write the options file; unchanged content is only rewritten when forced.

        Returns:
            True when the file was written
        """
        content = self.render()
        path = self.conf_path
        if not force and path.exists() and path.read_text(encoding="utf-8") == content:
            log.debug(f"{path} is up to date")
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        log.info(f"Wrote {len(self.options)} module option entries to {path}")
        return True

    def kernel_versions(self) -> list[str]:
        versions: set[str] = set()
        for modules_dir in KERNEL_MODULE_DIRS:
            base = Path(self.destdir) / modules_dir
            if base.is_dir() and not base.is_symlink():
                versions.update(child.name for child in base.iterdir() if child.is_dir())
        return sorted(versions)

    def run_depmod(self, force: bool = False) -> bool:
        """Regenerate module dependencies for every installed kernel.

        Unforced runs use ``depmod -A``, which skips kernels whose modules.dep
        is newer than all modules.
        """
        versions = self.kernel_versions()
        if not versions:
            log.info("No kernel modules found in the target, skipping depmod")
            return True
        flag = "-a" if force else "-A"
        success = True
        for version in versions:
            try:
                run_on_target(self.destdir, ["depmod", flag, version])
            except (CommandFailedError, OSError) as error:
                log.error(f"depmod failed for kernel {version}: {error}")
                success = False
        return success


class KernelModules:
    """Modules the target system loads at boot (modules-load.d)."""

    def __init__(self, destdir: str, modules_to_load: Iterable[str] = ()):
        self.destdir = destdir
        self.modules_to_load: list[str] = []
        for module in modules_to_load:
            self.add_module_to_load(module)

    def add_module_to_load(self, module: str) -> None:
        if module and module not in self.modules_to_load:
            self.modules_to_load.append(module)

    def save_modules_to_load(self) -> list[Path]:
        """Write one <module>.conf per module; returns the written files."""
        load_dir = Path(self.destdir) / MODULES_LOAD_DIR
        written: list[Path] = []
        if not self.modules_to_load:
            log.debug("No modules to load at boot")
            return written
        load_dir.mkdir(parents=True, exist_ok=True)
        for module in self.modules_to_load:
            path = load_dir / f"{module}.conf"
            path.write_text(f"{module}\n", encoding="utf-8")
            written.append(path)
        log.info(f"Modules loaded at boot: {', '.join(self.modules_to_load)}")
        return written
