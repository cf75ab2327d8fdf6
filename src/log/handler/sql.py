import sys
import sqlite3
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.local import effective_settings as config
from src.local.database import LogDBManager


class SQLiteHandler(logging.Handler):
    """
    Buffers log records in memory and writes them to the log database in batches.

    Records carry the emitting thread's name, so entries from the vault monitor and
    from console-driven vault operations can be told apart in the `logs` output.
    A background thread writes the buffer every ``flush_interval`` seconds, or as soon
    as it fills up.
    """

    def __init__(
        self,
        db_path: Path,
        buffer_size: Optional[int] = None,
        flush_interval: Optional[float] = None,
        max_db_size_mb: Optional[float] = None,
    ):
        """
        :param db_path: The log database file. Its table is created if missing.
        :param buffer_size: Records kept before the flush thread is woken (``LOG_BUFFER_SIZE``).
        :param flush_interval: Seconds between background flushes (``LOG_BUFFER_FLUSH_INTERVAL``).
        :param max_db_size_mb: Size above which a warning is logged (``MAX_LOG_DB_SIZE_MB``).
        """
        super().__init__()
        self.db_path = db_path
        self.buffer_size = buffer_size or config.LOG_BUFFER_SIZE
        self.flush_interval = flush_interval or config.LOG_BUFFER_FLUSH_INTERVAL
        self.max_db_size_mb = max_db_size_mb or config.MAX_LOG_DB_SIZE_MB
        self.db_size_check_interval = config.LOG_DB_SIZE_CHECK_INTERVAL_SECONDS

        self.log_db = LogDBManager(db_path)
        self.log_db.initialize_database()

        self._buffer: List[Dict[str, Any]] = []
        self._buffer_lock = threading.Lock()
        # Serializes writers so batches land in the order they were taken from the buffer.
        self._write_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._flush_requested = threading.Event()
        self._threads = [
            self._start_thread(self._periodic_flush, "SQLiteFlushThread"),
            self._start_thread(self._periodic_db_size_check, "LogDbSizeCheckThread"),
        ]

    def _start_thread(self, target, name: str) -> threading.Thread:
        thread = threading.Thread(target=target, daemon=True, name=name)
        thread.start()
        return thread

    def emit(self, record: logging.LogRecord) -> None:
        entry = {
            "timestamp": record.created,
            "level": record.levelname,
            "module": record.module,
            "funcName": record.funcName,
            "lineno": record.lineno,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        with self._buffer_lock:
            self._buffer.append(entry)
            full = len(self._buffer) >= self.buffer_size
        if full:
            # Written by the flush thread; emit runs under the handler lock and must not block on the database.
            self._flush_requested.set()

    def flush(self) -> None:
        """Writes everything buffered so far."""
        with self._write_lock:
            with self._buffer_lock:
                batch, self._buffer = self._buffer, []
            if not batch:
                return
            try:
                self.log_db.insert_log_batch(batch)
            except sqlite3.Error as e:
                # Logging from here would re-enter this handler.
                print(f"Error writing {len(batch)} log entries to '{self.db_path}': {e}", file=sys.stderr)

    def _periodic_flush(self) -> None:
        while not self._stop_event.is_set():
            self._flush_requested.wait(self.flush_interval)
            self._flush_requested.clear()
            self.flush()

    #* --- Size check ---
    def check_db_size(self) -> Optional[float]:
        """
        Logs a warning when the database outgrew ``max_db_size_mb``.

        :return: The current size in MB, or None if the file cannot be read.
        """
        try:
            size_mb = self.db_path.stat().st_size / (1024 * 1024)
        except OSError as e:
            print(f"Cannot read size of log database '{self.db_path}': {e}", file=sys.stderr)
            return None
        if size_mb > self.max_db_size_mb:
            logging.getLogger(__name__).warning(
                f"Log database '{self.db_path}' is {size_mb:.2f} MB, above the {self.max_db_size_mb} MB limit."
            )
        return size_mb

    def _periodic_db_size_check(self) -> None:
        while not self._stop_event.wait(self.db_size_check_interval):
            self.check_db_size()

    def close(self) -> None:
        """Stops the background threads and writes the remaining buffer. Safe to call twice."""
        self._stop_event.set()
        self._flush_requested.set()
        for thread in self._threads:
            if thread.is_alive() and thread is not threading.current_thread():
                thread.join()
        self.flush()
        super().close()
