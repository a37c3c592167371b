from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Union
import sqlite3
import threading

from core.errors import StoreError
from core.logger import get_logger


logger = get_logger(__name__)


class Transaction:
    """Cursor wrapper handed out by ``Database.transaction``; nothing is committed until the block exits."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        return self._conn.execute(sql, tuple(params))

    def executemany(self, sql: str, rows: Iterable[Iterable[Any]]) -> sqlite3.Cursor:
        return self._conn.executemany(sql, [tuple(row) for row in rows])


class Database:
    def __init__(self, path: Union[Path, str]) -> None:
        self.path = path
        self._lock = threading.Lock()
        if isinstance(path, Path):
            path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open database: {exc}")
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            # punishment_removed_roles has no cascade: rows outlive their
            # punishment until the roles they describe have been restored.
            cur.executescript(
                """
                PRAGMA journal_mode=WAL;

                CREATE TABLE IF NOT EXISTS servers (
                    id INTEGER PRIMARY KEY,
                    mod_role_id INTEGER NOT NULL,
                    dunce_role_id INTEGER,
                    verified_role_id INTEGER,
                    verification_message_id INTEGER,
                    verification_emoji TEXT,
                    verification_timeout INTEGER
                );

                CREATE TABLE IF NOT EXISTS punishments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    server_id INTEGER NOT NULL,
                    kind TEXT NOT NULL CHECK (kind IN ('dunce', 'ban')),
                    created_at TEXT NOT NULL,
                    expires TEXT,
                    UNIQUE (user_id, server_id, kind)
                );

                CREATE TABLE IF NOT EXISTS punishment_removed_roles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    punishment_id INTEGER NOT NULL,
                    role_id INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS optional_roles (
                    role_id INTEGER PRIMARY KEY,
                    server_id INTEGER NOT NULL,
                    emoji TEXT,
                    description TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_punishments_server ON punishments (server_id);
                CREATE INDEX IF NOT EXISTS idx_removed_roles_punishment ON punishment_removed_roles (punishment_id);
                CREATE INDEX IF NOT EXISTS idx_optional_roles_server ON optional_roles (server_id);
                """
            )
            self._conn.commit()
        logger.debug("Database schema ready at %s", self.path)

    def execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            try:
                cur = self._conn.execute(sql, tuple(params))
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StoreError(f"Database error: {exc}")
            return cur

    def query_all(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            try:
                cur = self._conn.execute(sql, tuple(params))
                return cur.fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"Database error: {exc}")

    def query_one(self, sql: str, params: Iterable[Any] = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            try:
                cur = self._conn.execute(sql, tuple(params))
                return cur.fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"Database error: {exc}")

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        with self._lock:
            try:
                yield Transaction(self._conn)
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StoreError(f"Database error: {exc}")
            except BaseException:
                self._conn.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            self._conn.close()
