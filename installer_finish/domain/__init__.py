"""Domain models for installer finish steps."""

from __future__ import annotations

from .models import (
    FilesystemInfo,
    FinishFunction,
    InstallContext,
    InstallMode,
    MountEntry,
    Stage,
    StepInfo,
    StepKind,
    UnmountResult,
)


__all__ = [
    "FilesystemInfo",
    "FinishFunction",
    "InstallContext",
    "InstallMode",
    "MountEntry",
    "Stage",
    "StepInfo",
    "StepKind",
    "UnmountResult",
]
