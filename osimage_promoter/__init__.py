"""Promote OSDBuilder images into Configuration Manager."""

from .__version__ import __version__

__all__ = ["__version__"]
