"""SQLite connection factory for the sharelens store.

Every connection loads sqlite-vec (``vec_distance_cosine`` is used by the
semantic channel of hybrid queries) and enforces foreign keys.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
)


class Database:
    """A ``.sharelens.db`` file.

    Args:
        db_path: SQLite file, created on first connect.
        busy_timeout: Seconds to wait on a locked database (a concurrent
            ingestion holds the write lock while inserting batches).
    """

    def __init__(self, db_path: Path | str, busy_timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Return a new connection with rows as ``sqlite3.Row``.

        Workflow steps run on the runner's worker thread, so the connection
        is not pinned to the thread that opened it. It is still used by one
        thread at a time.
        """
        conn = sqlite3.connect(
            self.db_path, timeout=self.busy_timeout, check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
