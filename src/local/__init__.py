"""
Local package for the vault daemon.

This package provides the merged application configuration through the
effective_settings object.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
