import sqlite3
import logging
import threading
from pathlib import Path
from contextlib import contextmanager
from typing import Any, Callable, Generator, List, Optional, Sequence, Tuple

log = logging.getLogger(__name__)

Params = Optional[Tuple[Any, ...]]


class BaseDBManager:
    """
    Base class for the sqlite managers.

    Every call opens its own connection. When a lock is given, each connection is
    used while holding it, and `exclusive()` lets a caller hold the same lock around
    a group of calls and the work between them.
    """

    def __init__(self, db_path: Path, lock: Optional[threading.RLock] = None, enable_wal: bool = False):
        """
        :param db_path: The SQLite database file.
        :param lock: A re-entrant lock serializing all access, or None for unguarded access.
        :param enable_wal: Whether connections switch the database to WAL mode.
        """
        self.db_path = db_path
        self.lock = lock
        self.enable_wal = enable_wal

    @contextmanager
    def exclusive(self) -> Generator[None, None, None]:
        """Holds the manager's lock for the duration of the block (no-op without a lock)."""
        if self.lock is None:
            yield
            return
        with self.lock:
            yield

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        with self.exclusive():
            conn = sqlite3.connect(self.db_path, timeout=10)
            try:
                if self.enable_wal:
                    conn.execute("PRAGMA journal_mode=WAL;")
                conn.row_factory = sqlite3.Row
                yield conn
            finally:
                conn.close()

    def _run(self, action: str, work: Callable[[sqlite3.Connection], Any]) -> Any:
        """
        Runs ``work`` on a fresh connection, logging and re-raising sqlite errors.

        :param action: Short description used in the error log.
        """
        try:
            with self._get_connection() as conn:
                return work(conn)
        except sqlite3.Error as e:
            log.error(f"Database {action} failed on '{self.db_path.name}': {e}")
            raise

    def execute(self, sql: str, params: Params = None) -> int:
        """
        Executes and commits one statement.

        :return: The number of rows the statement matched.
        """
        def work(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(sql, params or ())
            conn.commit()
            return cursor.rowcount
        return self._run("operation", work)

    def insert_row(self, sql: str, params: Params = None) -> int:
        """
        Executes and commits an INSERT.

        :return: The rowid of the new row.
        """
        def work(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(sql, params or ())
            conn.commit()
            return cursor.lastrowid
        return self._run("insert", work)

    def execute_many(self, sql: str, params: Sequence[Tuple[Any, ...]]) -> None:
        """Executes one statement per parameter tuple in a single transaction."""
        def work(conn: sqlite3.Connection) -> None:
            conn.executemany(sql, params)
            conn.commit()
        self._run("batch operation", work)

    def fetch_all(self, sql: str, params: Params = None) -> List[sqlite3.Row]:
        return self._run("fetch", lambda conn: conn.execute(sql, params or ()).fetchall())

    def fetch_one(self, sql: str, params: Params = None) -> Optional[sqlite3.Row]:
        return self._run("fetch", lambda conn: conn.execute(sql, params or ()).fetchone())
