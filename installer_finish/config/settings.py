"""Settings storage for finish step configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


SETTINGS_PATH = Path(
    os.environ.get(
        "INSTALLER_FINISH_SETTINGS_PATH",
        "/etc/installer-finish/settings.json",
    )
)

DESTDIR_ENV = "INSTALLER_FINISH_DESTDIR"

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_DESTDIR = "/"
DEFAULT_STANDALONE_DESTDIR = "/mnt"
DEFAULT_DRIVER_UPDATE_DIR = "/update"
DEFAULT_NETWORK_CONFIG_PATHS = [
    "etc/sysconfig/network/ifcfg-*",
    "etc/sysconfig/network/ifroute-*",
    "etc/sysconfig/network/routes",
    "etc/sysconfig/network/config",
    "etc/NetworkManager/system-connections/*",
    "etc/hostname",
    "etc/udev/rules.d/70-persistent-net.rules",
]

DEFAULT_SETTINGS: dict[str, Any] = {
    "destdir": DEFAULT_DESTDIR,
    "mode": "install",
    "stage": "initial",
    "proxy_to_target": False,
    "second_stage_required": False,
    "staging_devicegraph_path": None,
    "driver_update_dir": DEFAULT_DRIVER_UPDATE_DIR,
    "product_finish_command": None,
    "kernel_module_options": {},
    "modules_to_load": [],
    "snapper_config": "root",
    "network_config_paths": DEFAULT_NETWORK_CONFIG_PATHS,
    "log_dir": None,
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def load_settings() -> None:
    settings_store.values = dict(DEFAULT_SETTINGS)
    if SETTINGS_PATH.exists():
        try:
            data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            data = None
        if isinstance(data, dict):
            settings_store.values.update(data)
    destdir = os.environ.get(DESTDIR_ENV)
    if destdir:
        settings_store.values["destdir"] = destdir


load_settings()
