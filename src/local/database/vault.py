import sqlite3
import logging
import threading
from pathlib import Path
from collections import namedtuple
from typing import Any, List, Optional
from src.local.database.base import BaseDBManager

log = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "mount_point", "data_dir", "locked")


class VaultRecord(namedtuple('VaultRecord', ['id', 'name', 'mount_point', 'data_dir', 'locked'])):
    """A persisted vault. ``locked`` is stored as 0/1."""
    __slots__ = ()

    @property
    def is_locked(self) -> bool:
        return bool(self.locked)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "VaultRecord":
        return cls(row['id'], row['name'], row['mount_point'], row['data_dir'], row['locked'])


class VaultStoreError(Exception):
    """Base class for failures of the vault store."""


class VaultNotFoundError(VaultStoreError, LookupError):
    def __init__(self, vault_id: int):
        self.vault_id = vault_id
        super().__init__(f"Vault {vault_id} not found")


class DuplicateVaultNameError(VaultStoreError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Another vault named '{name}' exists")


class VaultDBManager(BaseDBManager):
    """
    Manages the vault records database.

    One instance is shared by every vault supervisor. Its re-entrant lock is the single
    exclusive access token for the store: ``exclusive()`` holds it across a whole
    supervisor operation, and each query re-enters it.
    """

    def __init__(self, db_path: Path, lock: Optional[threading.RLock] = None):
        """
        Initializes the VaultDBManager.

        :param db_path: The path to the vault SQLite database file.
        :param lock: The shared exclusive access lock; a new one is created if omitted.
        """
        super().__init__(db_path, lock=lock or threading.RLock(), enable_wal=True)

    def initialize_database(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.execute("""
                CREATE TABLE IF NOT EXISTS vaults (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    mount_point TEXT NOT NULL,
                    data_dir TEXT NOT NULL,
                    locked INTEGER NOT NULL DEFAULT 1
                )
            """)
            log.info(f"Vault database '{self.db_path}' initialized/checked in WAL mode.")
        except sqlite3.Error as e:
            log.critical(f"Error initializing vault database: {e}", exc_info=True)
            raise

    def insert(self, name: str, mount_point: str, data_dir: str) -> int:
        """
        Creates a new, locked vault record.

        :return: The id assigned to the vault.
        :raises DuplicateVaultNameError: If the name is already used.
        """
        try:
            return self.insert_row(
                "INSERT INTO vaults (name, mount_point, data_dir, locked) VALUES (?, ?, ?, 1)",
                (name, mount_point, data_dir)
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateVaultNameError(name) from e

    def get(self, vault_id: int) -> VaultRecord:
        """
        Retrieves a vault record by id.

        :raises VaultNotFoundError: If no vault has this id.
        """
        row = self.fetch_one(
            "SELECT id, name, mount_point, data_dir, locked FROM vaults WHERE id = ?", (vault_id,)
        )
        if row is None:
            raise VaultNotFoundError(vault_id)
        return VaultRecord.from_row(row)

    def update(self, vault_id: int, **fields: Any) -> None:
        """
        Updates one or more fields of a vault record.

        :param vault_id: The vault to update.
        :param fields: Column values, limited to name, mount_point, data_dir and locked.
        :raises ValueError: On an empty changeset or an unknown column.
        :raises VaultNotFoundError: If no vault has this id.
        :raises DuplicateVaultNameError: If a rename collides with another vault.
        """
        if not fields:
            raise ValueError("No fields to update.")
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update unknown vault fields: {', '.join(sorted(unknown))}")

        if "locked" in fields:
            fields["locked"] = 1 if fields["locked"] else 0

        # Column names come from the whitelist above, only values are parameters.
        assignments = ", ".join(f"{column} = ?" for column in fields)
        try:
            rowcount = self.execute(
                f"UPDATE vaults SET {assignments} WHERE id = ?",
                tuple(fields.values()) + (vault_id,)
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateVaultNameError(fields.get("name", "")) from e
        if rowcount == 0:
            raise VaultNotFoundError(vault_id)

    def delete(self, vault_id: int) -> None:
        """
        Deletes a vault record.

        :raises VaultNotFoundError: If no vault has this id.
        """
        if self.execute("DELETE FROM vaults WHERE id = ?", (vault_id,)) == 0:
            raise VaultNotFoundError(vault_id)

    def list_vaults(self) -> List[VaultRecord]:
        """Returns all vaults ordered by name."""
        rows = self.fetch_all("SELECT id, name, mount_point, data_dir, locked FROM vaults ORDER BY name")
        return [VaultRecord.from_row(row) for row in rows]
