"""Copy, import and distribute the content of selected builds.

Each build runs two independent chains, one for the image and one for the
upgrade package:

    unchecked -> skipped
              -> copy-failed
              -> copied -> imported (or updated) -> distributed / distribute-failed

A failure stops its own chain only. Nothing that already happened is undone,
apart from the backup rename done on purpose before content is replaced.
"""

from __future__ import annotations

import time
from datetime import date
from pathlib import Path
from typing import Callable

from osimage_promoter.config.settings import PromotionSettings
from osimage_promoter.domain import (
    BuildRecord,
    BuildResult,
    ContentKind,
    ContentOutcome,
    ContentResult,
    ModeFlags,
    PackageRecord,
    RunSummary,
    TargetDescriptors,
)
from osimage_promoter.exceptions import ContentCopyError, PlatformCommandError
from osimage_promoter.logging import LoggerFactory
from osimage_promoter.paths import resolve_targets
from osimage_promoter.storage import content


def package_description(build: BuildRecord) -> str:
    return (
        f"{build.name} {build.revision} from {build.source.value}, "
        f"modified {build.modified:%Y-%m-%d %H:%M}"
    )


class Promoter:
    """Runs the copy/import/distribute chains against one management site.

    ``platform`` provides create_package, start_distribution, redistribute and
    set_task_sequence_image (see ConfigMgrSite).
    """

    def __init__(
        self,
        settings: PromotionSettings,
        flags: ModeFlags,
        platform,
        *,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ):
        self.settings = settings
        self.flags = flags
        self.platform = platform
        self.sleep = sleep
        self.today = today

    # ------------------------------------------------------------------
    # Copy
    # ------------------------------------------------------------------

    def _copy(self, kind: ContentKind, source: Path, destination: Path, log) -> bool:
        """Copy content, then report whether the destination exists."""
        try:
            if kind is ContentKind.IMAGE:
                content.copy_image_file(source, destination)
            else:
                content.mirror_directory(source, destination, self.settings.mirror_threads)
        except ContentCopyError as exc:
            log.error(str(exc))
        if not destination.exists():
            log.error(f"{kind.value.capitalize()} not found at {destination} after copy")
            return False
        return True

    # ------------------------------------------------------------------
    # Distribute
    # ------------------------------------------------------------------

    def _distribute(
        self, kind: ContentKind, package: PackageRecord, *, update: bool, log
    ) -> ContentResult:
        try:
            if update:
                self.platform.redistribute(kind, package)
                log.info(f"Redistribution of {kind.value} {package.name} started")
            else:
                group = self.settings.distribution_point_group
                self.platform.start_distribution(kind, package, group)
                log.info(
                    f"Distribution of {kind.value} {package.name} to '{group}' started"
                )
        except PlatformCommandError as exc:
            log.error(str(exc))
            return ContentResult(kind, ContentOutcome.DISTRIBUTE_FAILED, package, str(exc))
        if kind is ContentKind.UPGRADE_PACKAGE:
            delay = self.settings.upgrade_distribution_delay
            log.debug(f"Waiting {delay}s after upgrade package distribution")
            self.sleep(delay)
        return ContentResult(kind, ContentOutcome.DISTRIBUTED, package)

    # ------------------------------------------------------------------
    # Create / update chains
    # ------------------------------------------------------------------

    def _create(
        self,
        kind: ContentKind,
        build: BuildRecord,
        source: Path,
        destination: Path,
        log,
    ) -> ContentResult:
        problems = []
        if destination.exists():
            problems.append(f"destination {destination} already exists")
        if not source.exists():
            problems.append(f"source {source} does not exist")
        if problems:
            for problem in problems:
                log.warning(f"Skipping {kind.value} of {build.name}: {problem}")
            return ContentResult(kind, ContentOutcome.SKIPPED, message="; ".join(problems))

        if not self._copy(kind, source, destination, log):
            return ContentResult(
                kind, ContentOutcome.COPY_FAILED, message=f"{destination} missing after copy"
            )

        try:
            package = self.platform.create_package(
                kind,
                build.name,
                destination,
                build.revision,
                package_description(build),
            )
        except PlatformCommandError as exc:
            log.error(str(exc))
            return ContentResult(kind, ContentOutcome.IMPORT_FAILED, message=str(exc))
        log.success(f"Imported {kind.value} {package.name} ({package.package_id})")
        return self._distribute(kind, package, update=False, log=log)

    def _update(
        self,
        kind: ContentKind,
        build: BuildRecord,
        source: Path,
        destination: Path,
        existing: PackageRecord | None,
        log,
    ) -> ContentResult:
        if existing is None:
            log.warning(f"Skipping {kind.value} of {build.name}: no existing package selected")
            return ContentResult(
                kind, ContentOutcome.SKIPPED, message="no existing package selected"
            )
        if not source.exists():
            log.warning(f"Skipping {kind.value} of {build.name}: source {source} does not exist")
            return ContentResult(
                kind, ContentOutcome.SKIPPED, message=f"source {source} does not exist"
            )

        # "destination exists" only proves the copy when the old content was moved aside
        had_content = destination.exists()
        if content.backup_existing(destination, self.today()) is None and had_content:
            message = f"current content at {destination} could not be backed up"
            log.error(f"Not replacing {kind.value} of {existing.name}: {message}")
            return ContentResult(kind, ContentOutcome.COPY_FAILED, existing, message)

        if not self._copy(kind, source, destination, log):
            return ContentResult(
                kind,
                ContentOutcome.COPY_FAILED,
                existing,
                f"{destination} missing after copy",
            )
        log.success(f"Replaced content of {kind.value} {existing.name} with {build.name}")
        return self._distribute(kind, existing, update=True, log=log)

    def _promote_content(
        self,
        kind: ContentKind,
        build: BuildRecord,
        source: Path,
        destination: Path,
        existing: PackageRecord | None,
        log,
    ) -> ContentResult:
        if self.flags.use_existing_packages:
            return self._update(kind, build, source, destination, existing, log)
        return self._create(kind, build, source, destination, log)

    def promote_build(self, build: BuildRecord, targets: TargetDescriptors) -> BuildResult:
        log = LoggerFactory.for_build(build.name)
        log.info(f"Promoting {build.format_label()} from {build.root_path}")

        image = self._promote_content(
            ContentKind.IMAGE,
            build,
            targets.image_source,
            targets.image_destination,
            targets.existing_image,
            log,
        )
        upgrade = None
        if self.flags.import_upgrade_package:
            upgrade = self._promote_content(
                ContentKind.UPGRADE_PACKAGE,
                build,
                targets.upgrade_source,
                targets.upgrade_destination,
                targets.existing_upgrade,
                log,
            )
        return BuildResult(build=build, image=image, upgrade=upgrade)

    # ------------------------------------------------------------------
    # Task sequence
    # ------------------------------------------------------------------

    def patch_task_sequence(
        self, task_sequence: str, step: str, package: PackageRecord | None
    ) -> bool:
        log = LoggerFactory.for_platform()
        if package is None:
            log.warning(
                f"Not updating step '{step}' of '{task_sequence}': "
                "no image package was imported in this run"
            )
            return False
        delay = self.settings.task_sequence_delay
        log.info(f"Waiting {delay}s before updating task sequence '{task_sequence}'")
        self.sleep(delay)
        try:
            self.platform.set_task_sequence_image(task_sequence, step, package)
        except PlatformCommandError as exc:
            log.error(str(exc))
            return False
        log.success(
            f"Step '{step}' of '{task_sequence}' now applies {package.name} ({package.package_id})"
        )
        return True

    def run(
        self,
        builds: list[BuildRecord],
        *,
        existing_image: PackageRecord | None = None,
        existing_upgrade: PackageRecord | None = None,
        task_sequence: str | None = None,
        task_sequence_step: str | None = None,
    ) -> RunSummary:
        """Promote every build, then patch the task sequence if requested."""
        summary = RunSummary()
        for build in builds:
            targets = resolve_targets(
                build, self.settings, self.flags, existing_image, existing_upgrade
            )
            summary.builds.append(self.promote_build(build, targets))

        if self.flags.update_task_sequence and task_sequence and task_sequence_step:
            summary.task_sequence_patched = self.patch_task_sequence(
                task_sequence, task_sequence_step, summary.image_package
            )
        return summary
