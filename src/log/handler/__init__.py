"""
Logging handlers for the application.
This module provides the buffered SQLite logging handler.
"""

from .sql import SQLiteHandler

__all__ = ["SQLiteHandler"]
