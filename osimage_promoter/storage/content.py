"""Copying image files and upgrade package trees to content shares.

Callers must check that the destination exists after a copy rather than
relying on the copy returning normally.
"""

from __future__ import annotations

import os
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from pathlib import Path

from osimage_promoter.exceptions import ContentCopyError
from osimage_promoter.logging import get_logger, operation_context

log = get_logger(source="content")

BACKUP_DATE_FORMAT = "%Y%m%d"


def copy_image_file(source: Path, destination: Path) -> None:
    """Copy one image file, overwriting the destination.

    Raises:
        ContentCopyError: If the source is missing, the destination directory
            is unreachable or the copy fails
    """
    with operation_context("copy", source=source, destination=destination):
        if not source.is_file():
            raise ContentCopyError("copy image", source, destination, "source file not found")
        if not destination.parent.is_dir():
            raise ContentCopyError(
                "copy image",
                source,
                destination,
                f"destination directory {destination.parent} is not reachable",
            )
        try:
            shutil.copy2(source, destination)
        except OSError as exc:
            raise ContentCopyError("copy image", source, destination, str(exc)) from exc


def _needs_copy(source: Path, destination: Path) -> bool:
    try:
        dest_stat = destination.stat()
    except FileNotFoundError:
        return True
    src_stat = source.stat()
    return (
        src_stat.st_size != dest_stat.st_size
        or int(src_stat.st_mtime) != int(dest_stat.st_mtime)
    )


def _scan_tree(root: Path) -> tuple[set[Path], set[Path]]:
    """Return (directories, files) below root as relative paths."""
    directories: set[Path] = set()
    files: set[Path] = set()
    for current, dirnames, filenames in os.walk(root):
        relative = Path(current).relative_to(root)
        for dirname in dirnames:
            directories.add(relative / dirname)
        for filename in filenames:
            files.add(relative / filename)
    return directories, files


def _remove_extras(
    destination: Path,
    source_dirs: set[Path],
    source_files: set[Path],
) -> int:
    dest_dirs, dest_files = _scan_tree(destination)
    removed = 0
    for relative in sorted(dest_files - source_files):
        if relative.parent in dest_dirs - source_dirs:
            continue  # removed with its directory
        (destination / relative).unlink()
        removed += 1
    for relative in sorted(dest_dirs - source_dirs):
        path = destination / relative
        if path.exists():
            shutil.rmtree(path)
            removed += 1
    return removed


def mirror_directory(source: Path, destination: Path, threads: int) -> int:
    """Make destination an exact copy of source.

    New and changed files are copied by a pool of ``threads`` workers; files
    and directories missing from source are removed from destination. Blocks
    until every transfer finished.

    Returns:
        Number of files copied

    Raises:
        ContentCopyError: If the source is missing or any file failed
    """
    with operation_context(
        "mirror", source=source, destination=destination, threads=threads
    ) as op_log:
        if not source.is_dir():
            raise ContentCopyError(
                "mirror upgrade package", source, destination, "source directory not found"
            )
        if not destination.parent.is_dir():
            raise ContentCopyError(
                "mirror upgrade package",
                source,
                destination,
                f"destination directory {destination.parent} is not reachable",
            )
        try:
            source_dirs, source_files = _scan_tree(source)
            destination.mkdir(exist_ok=True)
            removed = _remove_extras(destination, source_dirs, source_files)
            for relative in sorted(source_dirs):
                (destination / relative).mkdir(parents=True, exist_ok=True)
            pending = [
                relative
                for relative in sorted(source_files)
                if _needs_copy(source / relative, destination / relative)
            ]
        except OSError as exc:
            raise ContentCopyError(
                "mirror upgrade package", source, destination, str(exc)
            ) from exc

        op_log.debug(
            f"{len(pending)} of {len(source_files)} files to copy, {removed} extras removed"
        )

        failures: list[str] = []
        with ThreadPoolExecutor(max_workers=threads) as executor:
            futures = {
                executor.submit(shutil.copy2, source / relative, destination / relative): relative
                for relative in pending
            }
            for future in as_completed(futures):
                relative = futures[future]
                try:
                    future.result()
                except OSError as exc:
                    op_log.error(f"Failed to copy {relative}: {exc}")
                    failures.append(f"{relative}: {exc}")

        if failures:
            raise ContentCopyError(
                "mirror upgrade package",
                source,
                destination,
                f"{len(failures)} file(s) failed: " + "; ".join(failures[:5]),
            )
        return len(pending)


def backup_path(path: Path, today: date) -> Path:
    """Return the date-stamped name a file or directory is moved aside to.

    ``os.wim`` becomes ``os-20190105.wim``; a directory ``Upgrade`` becomes
    ``Upgrade-20190105``.
    """
    stamp = today.strftime(BACKUP_DATE_FORMAT)
    if path.is_dir() or not path.suffix:
        return path.with_name(f"{path.name}-{stamp}")
    return path.with_name(f"{path.stem}-{stamp}{path.suffix}")


def backup_existing(path: Path, today: date) -> Path | None:
    """Move existing content aside before it is replaced.

    Best effort: failures are logged and never raised.

    Returns:
        The backup path, or None if nothing was moved
    """
    if not path.exists():
        log.info(f"Nothing to back up at {path}")
        return None
    target = backup_path(path, today)
    if target.exists():
        log.error(f"Backup of {path} skipped: {target} already exists")
        return None
    try:
        path.rename(target)
    except OSError as exc:
        log.error(f"Backup of {path} to {target} failed: {exc}")
        return None
    log.info(f"Backed up {path} to {target}")
    return target
