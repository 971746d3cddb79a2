"""Command line entry point: resolve settings, select builds, run the pipeline."""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Callable, Sequence

from osimage_promoter.__version__ import __version__
from osimage_promoter.config import settings as settings_module
from osimage_promoter.config.settings import PromotionSettings
from osimage_promoter.domain import ContentKind, ModeFlags, RunSummary
from osimage_promoter.exceptions import (
    ConfigurationError,
    PlatformCommandError,
    PromotionError,
    SelectionError,
)
from osimage_promoter.logging import LoggerFactory, setup_logging
from osimage_promoter.pipeline import Promoter
from osimage_promoter.services import selection
from osimage_promoter.services.configmgr import ConfigMgrSite
from osimage_promoter.services.inventory import OSDBuilderInventory
from osimage_promoter.services.powershell import PowerShell


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="osimage-promoter",
        description=(
            "Copy OSDBuilder images to the content share, import them into "
            "Configuration Manager and distribute them"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--build-name",
        help="Use the latest build whose name starts with this text",
    )
    parser.add_argument(
        "--import-upgrade-package",
        action="store_true",
        help="Also import the build's OS directory as an upgrade package",
    )
    parser.add_argument(
        "--use-media",
        action="store_true",
        help="Select from OSMedia instead of OSBuilds",
    )
    parser.add_argument(
        "--use-existing-packages",
        action="store_true",
        help="Replace the content of existing packages instead of creating new ones",
    )
    parser.add_argument(
        "--existing-image-package",
        help="Name of the existing image package to update",
    )
    parser.add_argument(
        "--existing-upgrade-package",
        help="Name of the existing upgrade package to update",
    )
    parser.add_argument(
        "--update-task-sequence",
        action="store_true",
        help="Point a task sequence step at the imported image",
    )
    parser.add_argument("--task-sequence-name", help="Task sequence to update")
    parser.add_argument("--task-sequence-step", help="Apply Operating System step to update")
    parser.add_argument("--config", type=Path, help="Settings file (JSON)")
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write the resolved settings to the settings file and exit",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Never prompt; fail when a selection cannot be made from arguments",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.update_task_sequence and not (args.task_sequence_name and args.task_sequence_step):
        parser.error(
            "--update-task-sequence requires --task-sequence-name and --task-sequence-step"
        )
    return args


def mode_flags(args: argparse.Namespace) -> ModeFlags:
    return ModeFlags(
        import_upgrade_package=args.import_upgrade_package,
        use_media=args.use_media,
        use_existing_packages=args.use_existing_packages,
        update_task_sequence=args.update_task_sequence,
    )


def log_summary(summary: RunSummary) -> None:
    log = LoggerFactory.for_system()
    for result in summary.builds:
        parts = [f"image {result.image.outcome.value}"]
        if result.upgrade is not None:
            parts.append(f"upgrade package {result.upgrade.outcome.value}")
        log.info(f"{result.build.name}: {', '.join(parts)}")
    if summary.task_sequence_patched is not None:
        state = "updated" if summary.task_sequence_patched else "not updated"
        log.info(f"Task sequence {state}")


def run_promotion(
    args: argparse.Namespace,
    settings: PromotionSettings,
    inventory: OSDBuilderInventory,
    platform: ConfigMgrSite,
    *,
    interactive: bool,
    input_func: Callable[[str], str] = input,
    sleep: Callable[[float], None] = time.sleep,
) -> RunSummary:
    """Select builds and packages, then run the pipeline."""
    flags = mode_flags(args)
    log = LoggerFactory.for_system()

    inventory.ensure_available()
    platform.ensure_available()

    try:
        records = inventory.list_records(flags.use_media)
    except PlatformCommandError as exc:
        raise SelectionError(f"Could not read the build inventory: {exc}") from exc
    builds = selection.select_builds(
        records, args.build_name, interactive=interactive, input_func=input_func
    )

    existing_image = None
    existing_upgrade = None
    if flags.use_existing_packages:
        if len(builds) != 1:
            raise SelectionError("Select exactly one build when updating existing packages")
        try:
            existing_image = selection.select_existing_package(
                platform.list_packages(ContentKind.IMAGE),
                args.existing_image_package,
                interactive=interactive,
                title="Existing image packages:",
                input_func=input_func,
            )
            if flags.import_upgrade_package:
                existing_upgrade = selection.select_existing_package(
                    platform.list_packages(ContentKind.UPGRADE_PACKAGE),
                    args.existing_upgrade_package,
                    interactive=interactive,
                    title="Existing upgrade packages:",
                    input_func=input_func,
                )
        except PlatformCommandError as exc:
            raise SelectionError(f"Could not list existing packages: {exc}") from exc

    log.info(
        f"Promoting {len(builds)} build(s): "
        + ", ".join(build.name for build in builds)
    )
    promoter = Promoter(settings, flags, platform, sleep=sleep)
    summary = promoter.run(
        builds,
        existing_image=existing_image,
        existing_upgrade=existing_upgrade,
        task_sequence=args.task_sequence_name,
        task_sequence_step=args.task_sequence_step,
    )
    log_summary(summary)
    return summary


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = settings_module.load_settings(args.config)
    except ConfigurationError as error:
        print(str(error), file=sys.stderr)
        return 1

    if args.init_config:
        path = args.config or settings_module.SETTINGS_PATH
        settings_module.save_settings(settings, path)
        print(f"Settings written to {path}")
        return 0

    setup_logging(settings.log_path, max_bytes=settings.log_max_bytes, debug=args.debug)
    log = LoggerFactory.for_system()
    log.info(f"osimage-promoter {__version__} started")

    shell = PowerShell(settings.powershell_executable)
    inventory = OSDBuilderInventory(shell, settings.osdbuilder_min_version)
    platform = ConfigMgrSite(shell, settings.site_code)
    interactive = not args.non_interactive and sys.stdin.isatty()

    try:
        run_promotion(args, settings, inventory, platform, interactive=interactive)
    except PromotionError as error:
        log.critical(str(error))
        return 1
    log.info("Promotion run finished")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
