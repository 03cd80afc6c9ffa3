from __future__ import annotations

import asyncio
from typing import Any

from jurisdesk_chat.memory.activity import encode_details
from jurisdesk_chat.memory.store import LocalStore

_ActivityItem = tuple[str, int, str, str | None, dict[str, Any] | None]


class AsyncEventSink:
    """Batches ``activity_logs`` inserts on a background task."""

    def __init__(self, store: LocalStore, *, batch_size: int = 50, flush_interval_seconds: float = 0.5):
        self._store = store
        self._batch_size = max(1, batch_size)
        self._flush_interval_seconds = max(0.05, flush_interval_seconds)
        self._queue: asyncio.Queue[_ActivityItem] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._closed = False

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    def emit(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        entity_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if self._closed:
            return
        self._queue.put_nowait((entity_type, entity_id, action, entity_name, details))

    async def close(self) -> None:
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._flush_all()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval_seconds)
            await self._flush_once()

    async def _flush_all(self) -> None:
        while not self._queue.empty():
            await self._flush_once()

    async def _flush_once(self) -> None:
        items: list[_ActivityItem] = []
        while len(items) < self._batch_size and not self._queue.empty():
            items.append(self._queue.get_nowait())

        if not items:
            return

        params = [
            (entity_type, entity_id, action, entity_name, encode_details(details))
            for entity_type, entity_id, action, entity_name, details in items
        ]
        await asyncio.to_thread(self._write_batch, params)

    def _write_batch(self, params: list[tuple]) -> None:
        with self._store.transaction():
            self._store.executemany(
                """
                INSERT INTO activity_logs (entity_type, entity_id, action, entity_name, details)
                VALUES (?, ?, ?, ?, ?)
                """,
                params,
            )
