"""Settings for a promotion run.

Settings are read once from a JSON file, merged over ``DEFAULT_SETTINGS`` and
frozen into a :class:`PromotionSettings` object that is handed to the pipeline.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from osimage_promoter.exceptions import ConfigurationError


SETTINGS_PATH = Path(
    os.environ.get(
        "OSIMAGE_PROMOTER_SETTINGS_PATH",
        Path.home() / ".config" / "osimage-promoter" / "settings.json",
    )
)

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_LOG_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_MIRROR_THREADS = 64
DEFAULT_UPGRADE_DISTRIBUTION_DELAY = 10.0
DEFAULT_TASK_SEQUENCE_DELAY = 60.0

DEFAULT_SETTINGS: dict[str, Any] = {
    "image_share": r"\\cm01\sources\OSD\OS\Images",
    "upgrade_share": r"\\cm01\sources\OSD\OS\Upgrades",
    "distribution_point_group": "All Distribution Points",
    "site_code": "PS1",
    "log_path": str(
        Path.home() / ".local" / "state" / "osimage-promoter" / "promotion.log"
    ),
    "log_max_bytes": DEFAULT_LOG_MAX_BYTES,
    "mirror_threads": DEFAULT_MIRROR_THREADS,
    "upgrade_distribution_delay": DEFAULT_UPGRADE_DISTRIBUTION_DELAY,
    "task_sequence_delay": DEFAULT_TASK_SEQUENCE_DELAY,
    "image_relative_path": "OS/sources/install.wim",
    "upgrade_relative_path": "OS",
    "powershell_executable": "powershell.exe",
    "osdbuilder_min_version": "19.1.1.0",
}


@dataclass(frozen=True)
class PromotionSettings:
    image_share: Path
    upgrade_share: Path
    distribution_point_group: str
    site_code: str
    log_path: Path
    log_max_bytes: int
    mirror_threads: int
    upgrade_distribution_delay: float
    task_sequence_delay: float
    image_relative_path: str
    upgrade_relative_path: str
    powershell_executable: str
    osdbuilder_min_version: str

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> PromotionSettings:
        """Build settings from a dict, coercing each value to its field type.

        Raises:
            ConfigurationError: If a value cannot be converted
        """
        try:
            return cls(
                image_share=Path(values["image_share"]),
                upgrade_share=Path(values["upgrade_share"]),
                distribution_point_group=str(values["distribution_point_group"]),
                site_code=str(values["site_code"]),
                log_path=Path(values["log_path"]),
                log_max_bytes=int(values["log_max_bytes"]),
                mirror_threads=int(values["mirror_threads"]),
                upgrade_distribution_delay=float(values["upgrade_distribution_delay"]),
                task_sequence_delay=float(values["task_sequence_delay"]),
                image_relative_path=str(values["image_relative_path"]),
                upgrade_relative_path=str(values["upgrade_relative_path"]),
                powershell_executable=str(values["powershell_executable"]),
                osdbuilder_min_version=str(values["osdbuilder_min_version"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid setting value: {exc}") from exc

    def validate(self) -> None:
        if self.mirror_threads < 1 or self.mirror_threads > 128:
            raise ConfigurationError(
                f"mirror_threads must be between 1 and 128, got {self.mirror_threads}"
            )
        if self.upgrade_distribution_delay < 0 or self.task_sequence_delay < 0:
            raise ConfigurationError("Delays must not be negative")
        if self.log_max_bytes <= 0:
            raise ConfigurationError("log_max_bytes must be positive")


def load_settings(path: Path | None = None) -> PromotionSettings:
    """Resolve settings once, before the pipeline runs.

    A missing file means defaults. A file that exists but cannot be read or
    parsed is a configuration error, so the run never falls back to default
    shares by accident.
    """
    settings_path = path or SETTINGS_PATH
    values = dict(DEFAULT_SETTINGS)
    if settings_path.exists():
        try:
            data = json.loads(settings_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(
                f"Could not read settings file {settings_path}: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Settings file {settings_path} must contain a JSON object"
            )
        known = {field.name for field in fields(PromotionSettings)}
        values.update({key: value for key, value in data.items() if key in known})
    settings = PromotionSettings.from_mapping(values)
    settings.validate()
    return settings


def save_settings(settings: PromotionSettings, path: Path | None = None) -> None:
    settings_path = path or SETTINGS_PATH
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    values = {
        field.name: (
            str(getattr(settings, field.name))
            if isinstance(getattr(settings, field.name), Path)
            else getattr(settings, field.name)
        )
        for field in fields(PromotionSettings)
    }
    settings_path.write_text(
        json.dumps(values, indent=2, sort_keys=True),
        encoding="utf-8",
    )
