from __future__ import annotations

import asyncio
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any


class LocalStore:
    """SQLite persistence gateway.

    The async ``select``/``insert``/``update``/``delete`` methods run each
    statement on a worker thread so every database call is a suspension point
    for the event loop. Statements are serialized on a single connection.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()
        self._initialize_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    async def select(self, query: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._select, query, params)

    async def insert(self, query: str, params: tuple[Any, ...] = ()) -> int:
        cursor = await asyncio.to_thread(self._write, query, params)
        return int(cursor.lastrowid)

    async def update(self, query: str, params: tuple[Any, ...] = ()) -> int:
        cursor = await asyncio.to_thread(self._write, query, params)
        return cursor.rowcount

    async def delete(self, query: str, params: tuple[Any, ...] = ()) -> int:
        cursor = await asyncio.to_thread(self._write, query, params)
        return cursor.rowcount

    def execute(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(query, params)

    def executemany(self, query: str, seq_of_params: list[tuple[Any, ...]]) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.executemany(query, seq_of_params)

    def commit(self) -> None:
        with self._lock:
            self._conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except BaseException:
                self._conn.rollback()
                raise
            self._conn.commit()

    def backup_to(self, target_path: str | Path) -> None:
        target = sqlite3.connect(str(target_path))
        try:
            with self._lock:
                self._conn.backup(target)
        finally:
            target.close()

    def _select(self, query: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def _write(self, query: str, params: tuple[Any, ...]) -> sqlite3.Cursor:
        with self.transaction():
            return self._conn.execute(query, params)

    def _initialize_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS chat_sessions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                case_id INTEGER NULL,
                title TEXT,
                provider TEXT NOT NULL DEFAULT 'ollama'
                    CHECK (provider IN ('ollama', 'claude', 'openai', 'gemini')),
                model TEXT,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS chat_messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id INTEGER NOT NULL REFERENCES chat_sessions(id) ON DELETE CASCADE,
                role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
                content TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                thinking_content TEXT NULL,
                web_search_results TEXT NULL,
                cost_usd REAL NULL,
                intent_profile TEXT NULL
            );

            CREATE TABLE IF NOT EXISTS ai_usage_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id INTEGER NULL REFERENCES chat_sessions(id) ON DELETE SET NULL,
                input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                thinking_tokens INTEGER NOT NULL DEFAULT 0,
                cache_read_tokens INTEGER NOT NULL DEFAULT 0,
                cache_write_tokens INTEGER NOT NULL DEFAULT 0,
                cost_usd REAL NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS activity_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                entity_type TEXT NOT NULL,
                entity_id INTEGER NOT NULL,
                action TEXT NOT NULL CHECK (action IN ('create', 'update', 'delete')),
                entity_name TEXT NULL,
                details TEXT NULL,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_chat_messages_session_created
                ON chat_messages(session_id, created_at);
            CREATE INDEX IF NOT EXISTS idx_ai_usage_logs_created
                ON ai_usage_logs(created_at);
            CREATE INDEX IF NOT EXISTS idx_ai_usage_logs_session
                ON ai_usage_logs(session_id);
            CREATE INDEX IF NOT EXISTS idx_activity_logs_entity
                ON activity_logs(entity_type, entity_id);
            """
        )
        self._conn.commit()
