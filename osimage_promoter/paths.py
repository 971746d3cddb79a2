"""Resolution of source and destination paths for one build."""

from __future__ import annotations

from osimage_promoter.config.settings import PromotionSettings
from osimage_promoter.domain import BuildRecord, ModeFlags, PackageRecord, TargetDescriptors

IMAGE_EXTENSION = ".wim"


def resolve_targets(
    build: BuildRecord,
    settings: PromotionSettings,
    flags: ModeFlags,
    existing_image: PackageRecord | None = None,
    existing_upgrade: PackageRecord | None = None,
) -> TargetDescriptors:
    """Work out every path the pipeline touches for ``build``.

    New packages are named after the build (``<image_share>/<name>.wim`` and
    ``<upgrade_share>/<name>``). When existing packages are updated, their
    recorded source path is the destination instead.
    """
    image_source = build.root_path / settings.image_relative_path
    if flags.use_existing_packages and existing_image is not None:
        image_destination = existing_image.source_path
    else:
        image_destination = settings.image_share / f"{build.name}{IMAGE_EXTENSION}"

    upgrade_source = None
    upgrade_destination = None
    if flags.import_upgrade_package:
        upgrade_source = build.root_path / settings.upgrade_relative_path
        if flags.use_existing_packages and existing_upgrade is not None:
            upgrade_destination = existing_upgrade.source_path
        else:
            upgrade_destination = settings.upgrade_share / build.name

    return TargetDescriptors(
        image_source=image_source,
        image_destination=image_destination,
        upgrade_source=upgrade_source,
        upgrade_destination=upgrade_destination,
        existing_image=existing_image if flags.use_existing_packages else None,
        existing_upgrade=existing_upgrade if flags.use_existing_packages else None,
    )
