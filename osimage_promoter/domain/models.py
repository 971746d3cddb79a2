"""Domain model for OS image promotion.

Records coming from the build inventory and the management platform are
converted into these frozen objects as soon as they cross the PowerShell
boundary, so the pipeline never handles raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

# PowerShell emits timestamps with ToString('s')
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    return datetime.strptime(str(value)[:19], TIMESTAMP_FORMAT)


# ==============================================================================
# Inventory Domain
# ==============================================================================


class BuildSource(Enum):
    """Inventory the build record was read from."""

    OSBUILDS = "OSBuilds"
    OSMEDIA = "OSMedia"


@dataclass(frozen=True)
class BuildRecord:
    """One buildable unit produced by OSDBuilder."""

    name: str  # e.g., "Windows 10 Enterprise x64 1809"
    revision: str  # UBR, e.g., "17763.253"
    root_path: Path  # Build root directory
    modified: datetime
    source: BuildSource = BuildSource.OSBUILDS

    def format_label(self) -> str:
        """Format a human-readable label for selection prompts.

        Returns: e.g., "Win10-1809 (17763.253, 2018-12-01 10:00)"
        """
        return f"{self.name} ({self.revision}, {self.modified:%Y-%m-%d %H:%M})"

    @classmethod
    def from_inventory_dict(
        cls, record: dict[str, Any], source: BuildSource = BuildSource.OSBUILDS
    ) -> BuildRecord:
        """Convert an inventory record to a BuildRecord.

        Args:
            record: Dict with keys Name, UBR, FullName, ModifiedTime

        Raises:
            KeyError: If Name or FullName is missing
            ValueError: If ModifiedTime cannot be parsed
        """
        modified = _parse_timestamp(record.get("ModifiedTime"))
        if modified is None:
            raise ValueError(f"Build {record.get('Name')} has no ModifiedTime")
        return cls(
            name=record["Name"],
            revision=str(record.get("UBR") or ""),
            root_path=Path(record["FullName"]),
            modified=modified,
            source=source,
        )


# ==============================================================================
# Management Platform Domain
# ==============================================================================


class ContentKind(Enum):
    """Kind of content promoted for each build."""

    IMAGE = "image"
    UPGRADE_PACKAGE = "upgrade package"


@dataclass(frozen=True)
class PackageRecord:
    """An image or upgrade package registered on the management platform."""

    package_id: str
    name: str
    kind: ContentKind
    source_path: Path  # Backing file (image) or directory (upgrade package)
    version: str = ""
    source_date: datetime | None = None

    def format_label(self) -> str:
        date = f"{self.source_date:%Y-%m-%d}" if self.source_date else "unknown date"
        name = f"{self.name} {self.version}" if self.version else self.name
        return f"{name} ({self.package_id}, {date})"

    @classmethod
    def from_platform_dict(cls, record: dict[str, Any], kind: ContentKind) -> PackageRecord:
        """Convert a platform record (PackageID, Name, Version, SourceDate, PkgSourcePath)."""
        return cls(
            package_id=record["PackageID"],
            name=record["Name"],
            kind=kind,
            source_path=Path(record["PkgSourcePath"]),
            version=str(record.get("Version") or ""),
            source_date=_parse_timestamp(record.get("SourceDate")),
        )


# ==============================================================================
# Run Domain
# ==============================================================================


@dataclass(frozen=True)
class ModeFlags:
    """Independent switches that gate pipeline stages."""

    import_upgrade_package: bool = False
    use_media: bool = False
    use_existing_packages: bool = False
    update_task_sequence: bool = False


@dataclass(frozen=True)
class TargetDescriptors:
    """Resolved source and destination paths for one build."""

    image_source: Path
    image_destination: Path
    upgrade_source: Path | None = None
    upgrade_destination: Path | None = None
    existing_image: PackageRecord | None = None
    existing_upgrade: PackageRecord | None = None


class ContentOutcome(Enum):
    """Final state reached by one content kind of one build."""

    SKIPPED = "skipped"
    COPY_FAILED = "copy-failed"
    IMPORT_FAILED = "import-failed"
    DISTRIBUTE_FAILED = "distribute-failed"
    DISTRIBUTED = "distributed"


@dataclass(frozen=True)
class ContentResult:
    kind: ContentKind
    outcome: ContentOutcome
    package: PackageRecord | None = None
    message: str = ""

    @property
    def package_ready(self) -> bool:
        """True when a package was imported or updated, whatever distribution did."""
        return self.outcome in (ContentOutcome.DISTRIBUTED, ContentOutcome.DISTRIBUTE_FAILED)


@dataclass(frozen=True)
class BuildResult:
    build: BuildRecord
    image: ContentResult
    upgrade: ContentResult | None = None


@dataclass
class RunSummary:
    builds: list[BuildResult] = field(default_factory=list)
    task_sequence_patched: bool | None = None  # None when not requested

    @property
    def image_package(self) -> PackageRecord | None:
        """Image package produced last in the run, if any."""
        for result in reversed(self.builds):
            if result.image.package_ready:
                return result.image.package
        return None
