# src/__init__.py - v1
"""runarchive: validate instrument run archives and stage their metadata."""

from runarchive.version import __version__

__all__ = ["__version__"]
