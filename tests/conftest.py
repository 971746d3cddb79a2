"""
Pytest configuration and shared fixtures for osimage-promoter tests.

This module provides common fixtures and fakes used across all test modules.
"""

from datetime import date, datetime
from pathlib import Path
from typing import List

import pytest
from loguru import logger

from osimage_promoter.config.settings import DEFAULT_SETTINGS, PromotionSettings
from osimage_promoter.domain import BuildRecord, ContentKind, PackageRecord
from osimage_promoter.exceptions import PlatformCommandError


TODAY = date(2026, 10, 19)


# ==============================================================================
# Fakes
# ==============================================================================


class FakePlatform:
    """Records every management platform call; fails the operations named in ``fail``."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.fail: set = set()
        self.packages = {ContentKind.IMAGE: [], ContentKind.UPGRADE_PACKAGE: []}
        self._next_id = 1

    def _maybe_fail(self, operation, target=None):
        if operation in self.fail:
            raise PlatformCommandError(operation, f"{operation} exploded", target)

    def ensure_available(self):
        self.calls.append(("ensure_available",))
        self._maybe_fail("ensure_available")

    def list_packages(self, kind):
        self.calls.append(("list_packages", kind))
        self._maybe_fail("list_packages")
        return list(self.packages[kind])

    def create_package(self, kind, name, path, version, description):
        self.calls.append(("create_package", kind, name, path, version, description))
        self._maybe_fail("create_package", name)
        package = PackageRecord(
            package_id=f"PS1{self._next_id:05d}",
            name=name,
            kind=kind,
            source_path=path,
            version=version,
        )
        self._next_id += 1
        return package

    def start_distribution(self, kind, package, group):
        self.calls.append(("start_distribution", kind, package.package_id, group))
        self._maybe_fail("start_distribution", package.name)

    def redistribute(self, kind, package):
        self.calls.append(("redistribute", kind, package.package_id))
        self._maybe_fail("redistribute", package.name)

    def set_task_sequence_image(self, task_sequence, step, package, index=1):
        self.calls.append(("set_task_sequence_image", task_sequence, step, package.package_id, index))
        self._maybe_fail("set_task_sequence_image")

    def names(self):
        return [call[0] for call in self.calls]


class FakeInventory:
    def __init__(self, builds=None, media=None):
        self.builds = builds or []
        self.media = media or []
        self.available = True

    def ensure_available(self):
        return "19.1.1.0"

    def list_records(self, use_media):
        return list(self.media if use_media else self.builds)


class SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds):
        self.delays.append(seconds)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def shares(tmp_path) -> dict:
    image_share = tmp_path / "share" / "images"
    upgrade_share = tmp_path / "share" / "upgrades"
    image_share.mkdir(parents=True)
    upgrade_share.mkdir(parents=True)
    return {"image": image_share, "upgrade": upgrade_share}


@pytest.fixture
def settings(tmp_path, shares) -> PromotionSettings:
    values = dict(DEFAULT_SETTINGS)
    values.update(
        {
            "image_share": str(shares["image"]),
            "upgrade_share": str(shares["upgrade"]),
            "distribution_point_group": "All DPs",
            "log_path": str(tmp_path / "logs" / "promotion.log"),
            "mirror_threads": 4,
            "upgrade_distribution_delay": 10.0,
            "task_sequence_delay": 60.0,
        }
    )
    return PromotionSettings.from_mapping(values)


@pytest.fixture
def make_build(tmp_path):
    """Create an OSDBuilder build folder with an image and an OS tree."""

    def _make(name="Win10-1809", revision="17763.253", modified=None, with_image=True):
        root = tmp_path / "OSBuilds" / name
        sources = root / "OS" / "sources"
        sources.mkdir(parents=True)
        if with_image:
            (sources / "install.wim").write_bytes(b"WIM " + name.encode())
        (root / "OS" / "setup.exe").write_bytes(b"MZ")
        (sources / "boot.wim").write_bytes(b"BOOT")
        return BuildRecord(
            name=name,
            revision=revision,
            root_path=root,
            modified=modified or datetime(2018, 12, 1, 10, 0),
        )

    return _make


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during the test."""
    messages: List[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="DEBUG"
    )
    yield messages
    logger.remove(handler_id)


def existing_package(
    path: Path, kind=ContentKind.IMAGE, name="Windows 10 x64", package_id="PS100042"
) -> PackageRecord:
    return PackageRecord(
        package_id=package_id,
        name=name,
        kind=kind,
        source_path=path,
        version="17763.1",
    )
