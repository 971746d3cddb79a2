from __future__ import annotations

import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | "
    "{level: <8} | "
    "{extra[source]: <12} | "
    "{extra[job_id]: <20} | "
    "{message}"
)


def _truncate_if_oversized(log_path: Path, max_bytes: int) -> bool:
    """Empty the log file when it has grown past ``max_bytes``.

    Only called once when logging is set up, so a run never rotates its own
    log halfway through.
    """
    try:
        size = log_path.stat().st_size
    except FileNotFoundError:
        return False
    if size <= max_bytes:
        return False
    log_path.write_text("", encoding="utf-8")
    return True


def setup_logging(
    log_path: Path,
    *,
    max_bytes: int,
    debug: bool = False,
    console: bool = True,
) -> Logger:
    """
    Setup the console and file sinks for one promotion run.

    Log Files:
    - log_path: INFO+ events (DEBUG+ with debug=True), appended across runs,
      truncated at start of the run when larger than max_bytes

    Args:
        log_path: Path of the append-only run log
        max_bytes: Size threshold checked once before the file sink is added
        debug: Enable DEBUG level logging
        console: Also log to stderr
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "promoter"})

    level = "DEBUG" if debug else "INFO"

    if console:
        logger.add(
            sys.stderr,
            level=level,
            backtrace=False,
            diagnose=False,
            colorize=True,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{extra[source]: <12}</cyan> | "
                "{message}"
            ),
        )

    log_path.parent.mkdir(parents=True, exist_ok=True)
    truncated = _truncate_if_oversized(log_path, max_bytes)

    logger.add(
        log_path,
        level=level,
        mode="a",
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
        format=FILE_FORMAT,
    )

    if truncated:
        logger.bind(source="system").info(
            f"Log file exceeded {max_bytes} bytes and was restarted"
        )
    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking operations
        tags: Tags for filtering (e.g., ["copy", "image"])
        source: Source component (e.g., "copy", "import", "distribute")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking one pipeline operation with timing.

    Logs start, completion and failure (with the error text), then re-raises
    so the caller decides whether the failure is fatal.

    Example:
        with operation_context("copy", source=src, destination=dst) as log:
            shutil.copy2(src, dst)
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"
    description = ", ".join(f"{key}={value}" for key, value in details.items())
    log = logger.bind(source=operation, job_id=job_id, tags=[operation])

    start_time = time.time()
    log.info(f"{operation.capitalize()} started ({description})")
    try:
        yield log
    except Exception as e:
        duration = time.time() - start_time
        log.error(
            f"{operation.capitalize()} failed after {duration:.2f}s "
            f"({description}): {e}"
        )
        raise
    duration = time.time() - start_time
    log.success(f"{operation.capitalize()} completed in {duration:.2f}s")


class LoggerFactory:
    """
    Factory for creating stage-specific loggers with automatic context.
    """

    @staticmethod
    def for_selection() -> Logger:
        """Logger for build and package selection."""
        return logger.bind(source="select", tags=["select"])

    @staticmethod
    def for_build(build_name: str) -> Logger:
        """Logger for one build's promotion."""
        return logger.bind(job_id=build_name, source="pipeline", tags=["pipeline"])

    @staticmethod
    def for_platform() -> Logger:
        """Logger for inventory and management platform calls."""
        return logger.bind(source="platform", tags=["platform"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for system operations (startup, shutdown, config)."""
        return logger.bind(source="system", tags=["system"])
