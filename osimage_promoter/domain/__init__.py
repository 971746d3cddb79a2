"""Domain models for OS image promotion."""

from __future__ import annotations

from .models import (
    BuildRecord,
    BuildResult,
    BuildSource,
    ContentKind,
    ContentOutcome,
    ContentResult,
    ModeFlags,
    PackageRecord,
    RunSummary,
    TargetDescriptors,
)


__all__ = [
    "BuildRecord",
    "BuildResult",
    "BuildSource",
    "ContentKind",
    "ContentOutcome",
    "ContentResult",
    "ModeFlags",
    "PackageRecord",
    "RunSummary",
    "TargetDescriptors",
]
