"""Custom exceptions for the promotion pipeline.

Exception Hierarchy:
    PromotionError (base)
        ├── SetupError
        ├── ConfigurationError
        ├── SelectionError
        ├── ContentCopyError
        └── PlatformCommandError

SetupError, ConfigurationError and SelectionError are fatal and stop the run.
ContentCopyError and PlatformCommandError are caught per stage, logged, and the
run moves on to the next independent unit of work.

Usage:
    from osimage_promoter.exceptions import ContentCopyError

    if not source.exists():
        raise ContentCopyError("copy image", source, destination, "source missing")
"""

from __future__ import annotations

from pathlib import Path


class PromotionError(Exception):
    """Base exception for all promotion operations."""


class SetupError(PromotionError):
    """A required external capability is missing or has the wrong version."""

    def __init__(self, capability: str, reason: str):
        self.capability = capability
        self.reason = reason
        super().__init__(f"{capability} is not available: {reason}")


class ConfigurationError(PromotionError):
    """Settings could not be resolved."""


class SelectionError(PromotionError):
    """No usable build or package selection could be made."""


class ContentCopyError(PromotionError):
    """Copying content to a share failed."""

    def __init__(
        self,
        operation: str,
        source: Path | str,
        destination: Path | str,
        message: str,
    ):
        self.operation = operation
        self.source = source
        self.destination = destination
        super().__init__(f"{operation} failed ({source} -> {destination}): {message}")


class PlatformCommandError(PromotionError):
    """An inventory or management platform command failed."""

    def __init__(self, operation: str, message: str, target: str | None = None):
        self.operation = operation
        self.target = target
        self.details = message
        if target:
            super().__init__(f"{operation} failed for {target}: {message}")
        else:
            super().__init__(f"{operation} failed: {message}")
