"""
This module initializes the local database management system.
It imports the database managers for vault records and logs.
"""

from .log import LogDBManager
from .vault import VaultDBManager, VaultRecord, VaultStoreError, VaultNotFoundError, DuplicateVaultNameError

__all__ = [
    "LogDBManager", "VaultDBManager", "VaultRecord",
    "VaultStoreError", "VaultNotFoundError", "DuplicateVaultNameError",
]
