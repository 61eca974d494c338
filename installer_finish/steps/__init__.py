"""Finish step clients and their registry.

Each step answers ``Info`` with its progress metadata and performs its action
on ``Write``. The registry maps StepKind to the implementing class so callers
never dispatch on raw strings.
"""

from __future__ import annotations

from typing import Any, Mapping

from installer_finish.domain.models import InstallContext, InstallMode, StepKind

from .base import FinishStep
from .driver_update import DriverUpdateFinish
from .kernel import KernelFinish
from .network import NetworkFinish
from .proxy import ProxyFinish
from .snapshots import SnapshotsFinish
from .umount import UmountFinish


STEP_CLASSES: dict[StepKind, type[FinishStep]] = {
    StepKind.DRIVER_UPDATE: DriverUpdateFinish,
    StepKind.KERNEL: KernelFinish,
    StepKind.NETWORK: NetworkFinish,
    StepKind.PROXY: ProxyFinish,
    StepKind.SNAPSHOTS: SnapshotsFinish,
    StepKind.UMOUNT: UmountFinish,
}


def build_step(
    kind: StepKind | str,
    context: InstallContext,
    values: Mapping[str, Any] | None = None,
) -> FinishStep:
    """Instantiate a step with collaborators configured from settings values."""
    step_class = STEP_CLASSES[StepKind.parse(kind)]
    return step_class.from_settings(context, values or {})


def steps_for_mode(
    mode: InstallMode,
    context: InstallContext,
    values: Mapping[str, Any] | None = None,
) -> list[FinishStep]:
    """Steps whose Info lists the given mode, in registry order."""
    steps = [build_step(kind, context, values) for kind in STEP_CLASSES]
    return [step for step in steps if step.info().applies_to(mode)]


__all__ = [
    "STEP_CLASSES",
    "DriverUpdateFinish",
    "FinishStep",
    "KernelFinish",
    "NetworkFinish",
    "ProxyFinish",
    "SnapshotsFinish",
    "UmountFinish",
    "build_step",
    "steps_for_mode",
]
