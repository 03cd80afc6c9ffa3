from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from jurisdesk_chat.memory.store import LocalStore

if TYPE_CHECKING:
    from jurisdesk_chat.memory.event_sink import AsyncEventSink

ENTITY_SESSION = "chat_session"
ENTITY_MESSAGE = "chat_message"


def encode_details(details: dict[str, Any] | None) -> str | None:
    if details is None:
        return None
    return json.dumps(details, ensure_ascii=False, default=str)


class ActivityLogger:
    """Writes ``activity_logs`` rows, through the batching sink when one is attached."""

    def __init__(self, store: LocalStore, *, sink: AsyncEventSink | None = None):
        self._store = store
        self._sink = sink

    def log_activity(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        entity_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if self._sink is not None:
            self._sink.emit(entity_type, entity_id, action, entity_name, details)
            return
        self._store.execute(
            """
            INSERT INTO activity_logs (entity_type, entity_id, action, entity_name, details)
            VALUES (?, ?, ?, ?, ?)
            """,
            (entity_type, entity_id, action, entity_name, encode_details(details)),
        )
        self._store.commit()

    async def get_activity_logs(
        self,
        *,
        entity_type: str | None = None,
        entity_id: int | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if entity_type is not None:
            clauses.append("entity_type = ?")
            params.append(entity_type)
        if entity_id is not None:
            clauses.append("entity_id = ?")
            params.append(entity_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = await self._store.select(
            f"SELECT * FROM activity_logs {where} ORDER BY created_at DESC, id DESC LIMIT ?",
            (*params, max(1, limit)),
        )
        for row in rows:
            raw = row.get("details")
            row["details"] = json.loads(raw) if raw else None
        return rows
