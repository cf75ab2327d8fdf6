import time
import sqlite3
import logging
from pathlib import Path
from collections import namedtuple
from typing import Any, Dict, List

from src.local.database.base import BaseDBManager

log = logging.getLogger(__name__)

LogEntry = namedtuple('LogEntry', ['timestamp', 'level', 'thread', 'module', 'message'])

_COLUMNS = ("timestamp", "level", "module", "funcName", "lineno", "thread", "message")


class LogDBManager(BaseDBManager):
    """
    Stores application log records written by `SQLiteHandler` and serves them to the console.

    It has no lock of its own: the handler serializes writers, and readers open
    their own short-lived connections.
    """

    def __init__(self, db_path: Path):
        super().__init__(db_path, lock=None, enable_wal=False)

    def initialize_database(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.execute('''
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    level TEXT NOT NULL,
                    module TEXT,
                    funcName TEXT,
                    lineno INTEGER,
                    thread TEXT,
                    message TEXT
                )
            ''')
        except sqlite3.Error as e:
            log.critical(f"Could not create log table in '{self.db_path}': {e}", exc_info=True)
            raise

    def insert_log_batch(self, log_entries: List[Dict[str, Any]]) -> None:
        """
        Inserts log records in one transaction.

        :param log_entries: Dicts keyed by timestamp, level, module, funcName, lineno, thread
            and message. A missing thread is stored as NULL.
        """
        if not log_entries:
            return
        rows = [tuple(entry.get(column) for column in _COLUMNS) for entry in log_entries]
        self.execute_many(
            f"INSERT INTO logs ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' for _ in _COLUMNS)})",
            rows
        )

    def fetch_last_entries(self, limit: int, include_debug: bool = False) -> List[LogEntry]:
        """
        Returns the most recent entries, oldest first, formatted for display.

        A missing or unreadable database yields an empty list.

        :param limit: Maximum number of entries.
        :param include_debug: Whether DEBUG entries are returned.
        """
        level_filter = "" if include_debug else "WHERE level != 'DEBUG'"
        try:
            rows = self.fetch_all(
                f"SELECT timestamp, level, thread, module, message FROM logs {level_filter} "
                f"ORDER BY id DESC LIMIT ?",
                (limit,)
            )
        except sqlite3.Error as e:
            log.warning(f"Cannot read log entries from '{self.db_path}': {e}")
            return []

        entries = []
        for row in reversed(rows):
            when = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(row['timestamp']))
            entries.append(LogEntry(
                timestamp=row['timestamp'], level=row['level'], thread=row['thread'], module=row['module'],
                message=f"{when} - {row['level']:<8} - [{row['thread']}/{row['module']}] - {row['message']}"
            ))
        return entries
