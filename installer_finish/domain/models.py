"""Domain model for installer finish steps.

Type-safe value objects passed between the finish steps, the unmount
sequencer and the command line entry point instead of loose dicts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Iterable, Mapping

from installer_finish.exceptions import ConfigurationError, UnknownOperationError


# ==============================================================================
# Installation Context
# ==============================================================================


class InstallMode(Enum):
    """Installation mode a finish step can apply to."""

    INSTALL = "install"
    UPDATE = "update"
    AUTOINST = "autoinst"
    LIVE_INSTALL = "live_install"

    @classmethod
    def parse(cls, value: str | InstallMode) -> InstallMode:
        """Parse a mode tag, accepting the long installer spellings too.

        Raises:
            ConfigurationError: If the tag is not a known mode
        """
        if isinstance(value, cls):
            return value
        tag = str(value).strip().lower()
        tag = _MODE_ALIASES.get(tag, tag)
        try:
            return cls(tag)
        except ValueError:
            raise ConfigurationError(f"Unknown installation mode: {value!r}") from None


_MODE_ALIASES = {
    "installation": "install",
    "live_installation": "live_install",
}

# Order used when serializing the "when" list of a step.
MODE_ORDER = (
    InstallMode.INSTALL,
    InstallMode.UPDATE,
    InstallMode.AUTOINST,
    InstallMode.LIVE_INSTALL,
)


class Stage(Enum):
    """Installer stage; proxy settings are only copied in the initial one."""

    INITIAL = "initial"
    CONTINUE = "continue"
    NORMAL = "normal"

    @classmethod
    def parse(cls, value: str | Stage) -> Stage:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(f"Unknown installer stage: {value!r}") from None


@dataclass(frozen=True)
class InstallContext:
    """Environment every finish step is built with."""

    destdir: str = "/"
    mode: InstallMode = InstallMode.INSTALL
    stage: Stage = Stage.INITIAL
    running_standalone: bool = False

    @property
    def target_root(self) -> PurePosixPath:
        return PurePosixPath(self.destdir)

    @classmethod
    def from_settings(cls, values: Mapping[str, Any]) -> InstallContext:
        """Build a context from a settings mapping.

        Raises:
            ConfigurationError: If destdir is not absolute or mode/stage are unknown
        """
        destdir = str(values.get("destdir") or "/")
        if not destdir.startswith("/"):
            raise ConfigurationError(f"destdir must be an absolute path: {destdir}")
        return cls(
            destdir=normalize_path(destdir),
            mode=InstallMode.parse(values.get("mode") or InstallMode.INSTALL),
            stage=Stage.parse(values.get("stage") or Stage.INITIAL),
            running_standalone=bool(values.get("running_standalone", False)),
        )


# ==============================================================================
# Finish Step Contract
# ==============================================================================


class StepKind(Enum):
    """The finish step clients this package provides."""

    DRIVER_UPDATE = "driver_update2"
    KERNEL = "kernel"
    NETWORK = "network"
    PROXY = "proxy"
    SNAPSHOTS = "snapshots"
    UMOUNT = "umount"

    @classmethod
    def parse(cls, value: str | StepKind) -> StepKind:
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower()
        if name.endswith("_finish"):
            name = name[: -len("_finish")]
        try:
            return cls(name)
        except ValueError:
            raise ConfigurationError(f"Unknown finish step: {value!r}") from None


class FinishFunction(Enum):
    """Functions a finish step can be called with."""

    INFO = "Info"
    WRITE = "Write"

    @classmethod
    def parse(cls, value: object) -> FinishFunction:
        """Parse a function name.

        Raises:
            UnknownOperationError: If the name is not Info or Write
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownOperationError(value) from None


@dataclass(frozen=True)
class StepInfo:
    """Static description of a finish step, used for progress totals."""

    steps: int
    title: str | None = None
    modes: frozenset[InstallMode] = field(default_factory=frozenset)

    def applies_to(self, mode: InstallMode) -> bool:
        return mode in self.modes

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the mapping returned by the Info function."""
        result: dict[str, Any] = {"steps": self.steps}
        if self.title is not None:
            result["title"] = self.title
        result["when"] = [mode.value for mode in MODE_ORDER if mode in self.modes]
        return result


def step_info(steps: int, title: str | None, modes: Iterable[InstallMode]) -> StepInfo:
    return StepInfo(steps=steps, title=title, modes=frozenset(modes))


# ==============================================================================
# Mount Domain
# ==============================================================================


_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


def decode_mount_field(value: str) -> str:
    """Decode the octal escapes the kernel uses in /proc/mounts (e.g. \\040)."""
    return _OCTAL_ESCAPE.sub(lambda match: chr(int(match.group(1), 8)), value)


def normalize_path(path: str) -> str:
    """Collapse duplicate and trailing slashes without touching the filesystem."""
    return str(PurePosixPath(path))


def is_under(path: str, root: str) -> bool:
    """Check whether path is root itself or below it, compared by component."""
    path_parts = PurePosixPath(normalize_path(path)).parts
    root_parts = PurePosixPath(normalize_path(root)).parts
    return path_parts[: len(root_parts)] == root_parts


def path_depth(path: str) -> int:
    """Number of components below /, so / is 0 and /mnt/boot is 2."""
    return len(PurePosixPath(normalize_path(path)).parts) - 1


@dataclass(frozen=True)
class MountEntry:
    """One line of a mounts file."""

    device: str
    mount_point: str
    filesystem_type: str
    options: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_read_only(self) -> bool:
        return "ro" in self.options

    @property
    def depth(self) -> int:
        return path_depth(self.mount_point)

    @classmethod
    def from_mounts_line(cls, line: str) -> MountEntry | None:
        """Parse a /proc/mounts line; returns None for blank or short lines."""
        parts = line.split()
        if len(parts) < 4:
            return None
        return cls(
            device=decode_mount_field(parts[0]),
            mount_point=decode_mount_field(parts[1]),
            filesystem_type=parts[2],
            options=frozenset(parts[3].split(",")),
        )


@dataclass(frozen=True)
class UnmountResult:
    """Outcome of one unmount pass over the target root."""

    attempted: tuple[str, ...] = ()
    leftover: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.leftover


# ==============================================================================
# Staging Device Graph
# ==============================================================================


@dataclass(frozen=True)
class FilesystemInfo:
    """A filesystem of the staging device graph, as far as finish steps need it."""

    device: str
    fs_type: str
    mount_point: str | None = None
    mount_options: tuple[str, ...] = ()
    exists_in_probed: bool = True
    subvolumes_prefix: str = ""

    @property
    def is_new(self) -> bool:
        """True when the installer creates this filesystem (absent at probe time)."""
        return not self.exists_in_probed

    @property
    def is_read_only_btrfs(self) -> bool:
        return (
            self.fs_type == "btrfs"
            and bool(self.mount_point)
            and "ro" in self.mount_options
        )

    def btrfs_subvolume_mount_point(self, subvolume_path: str) -> str:
        """Path where a subvolume is reachable below this filesystem's mount point.

        The subvolumes prefix (e.g. "@") is stripped from the subvolume path
        before joining it to the mount point.
        """
        if self.mount_point is None:
            raise ValueError(f"{self.device} has no mount point")
        relative = subvolume_path.strip("/")
        prefix = self.subvolumes_prefix.strip("/")
        if prefix and (relative == prefix or relative.startswith(prefix + "/")):
            relative = relative[len(prefix):].lstrip("/")
        if not relative:
            return self.mount_point
        return str(PurePosixPath(self.mount_point) / relative)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FilesystemInfo:
        """Convert a device graph JSON entry to a FilesystemInfo.

        Raises:
            KeyError: If device or type are missing
        """
        options = data.get("mount_options") or ()
        if isinstance(options, str):
            options = options.split(",")
        return cls(
            device=data["device"],
            fs_type=str(data["type"]).lower(),
            mount_point=data.get("mount_point") or None,
            mount_options=tuple(options),
            exists_in_probed=bool(data.get("exists_in_probed", True)),
            subvolumes_prefix=data.get("subvolumes_prefix") or "",
        )
