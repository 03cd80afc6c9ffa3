from __future__ import annotations

from datetime import datetime

from jurisdesk_chat.memory.models import (
    ChatMessage,
    ChatSession,
    WebSearchResult,
    serialize_web_search_results,
)
from jurisdesk_chat.memory.store import LocalStore


def default_session_title(now: datetime | None = None) -> str:
    moment = now or datetime.now()
    return f"Nova conversa - {moment.strftime('%d/%m/%Y')}"


class SessionManager:
    """SQL for ``chat_sessions`` and ``chat_messages``."""

    def __init__(self, store: LocalStore):
        self._store = store

    async def get_session(self, session_id: int) -> ChatSession | None:
        rows = await self._store.select(
            "SELECT * FROM chat_sessions WHERE id = ? LIMIT 1",
            (session_id,),
        )
        if not rows:
            return None
        return ChatSession.from_row(rows[0])

    async def list_sessions(self) -> list[ChatSession]:
        rows = await self._store.select(
            """
            SELECT id, case_id, title, provider, model, created_at
            FROM chat_sessions
            ORDER BY created_at DESC, id DESC
            """
        )
        return [ChatSession.from_row(row) for row in rows]

    async def create_session(
        self,
        provider: str,
        model: str | None,
        *,
        case_id: int | None = None,
        title: str | None = None,
    ) -> int:
        return await self._store.insert(
            "INSERT INTO chat_sessions (case_id, title, provider, model) VALUES (?, ?, ?, ?)",
            (case_id, title or default_session_title(), provider, model),
        )

    async def update_provider_model(self, session_id: int, provider: str, model: str | None) -> int:
        return await self._store.update(
            "UPDATE chat_sessions SET provider = ?, model = ? WHERE id = ?",
            (provider, model, session_id),
        )

    async def delete_session(self, session_id: int) -> None:
        await self._store.delete("DELETE FROM chat_messages WHERE session_id = ?", (session_id,))
        await self._store.delete("DELETE FROM chat_sessions WHERE id = ?", (session_id,))

    async def append_user_message(self, session_id: int, content: str) -> int:
        return await self._store.insert(
            "INSERT INTO chat_messages (session_id, role, content) VALUES (?, 'user', ?)",
            (session_id, content),
        )

    async def append_assistant_message(
        self,
        session_id: int,
        content: str,
        *,
        thinking_content: str | None = None,
        web_search_results: list[WebSearchResult] | None = None,
        cost_usd: float | None = None,
        intent_profile: str | None = None,
    ) -> int:
        return await self._store.insert(
            """
            INSERT INTO chat_messages
                (session_id, role, content, thinking_content, web_search_results, cost_usd, intent_profile)
            VALUES (?, 'assistant', ?, ?, ?, ?, ?)
            """,
            (
                session_id,
                content,
                thinking_content,
                serialize_web_search_results(web_search_results),
                cost_usd,
                intent_profile,
            ),
        )

    async def load_page(self, session_id: int, *, limit: int, offset: int = 0) -> list[ChatMessage]:
        """One page of messages, newest page first, returned in chronological order."""
        rows = await self._store.select(
            """
            SELECT * FROM chat_messages
            WHERE session_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (session_id, limit, offset),
        )
        rows.reverse()
        return [ChatMessage.from_row(row) for row in rows]

    async def build_session_summary(self, session_id: int) -> dict:
        session = await self.get_session(session_id)
        if session is None:
            raise ValueError(f"Session does not exist: {session_id}")

        rows = await self._store.select(
            """
            SELECT role, COUNT(*) AS c, COALESCE(SUM(cost_usd), 0) AS cost
            FROM chat_messages
            WHERE session_id = ?
            GROUP BY role
            """,
            (session_id,),
        )
        counts = {str(row["role"]): int(row["c"]) for row in rows}
        total_cost = sum(float(row["cost"]) for row in rows)

        last = await self._store.select(
            """
            SELECT role, content FROM chat_messages
            WHERE session_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (session_id,),
        )

        return {
            "session_id": session.id,
            "title": session.title or f"#{session.id}",
            "provider": session.provider,
            "model": session.model,
            "case_id": session.case_id,
            "created_at": session.created_at,
            "message_count": sum(counts.values()),
            "user_message_count": counts.get("user", 0),
            "assistant_message_count": counts.get("assistant", 0),
            "total_cost_usd": total_cost,
            "last_message_preview": self._preview_content(last[0]["content"]) if last else "",
        }

    def _preview_content(self, content: str, max_chars: int = 140) -> str:
        text = " ".join(content.split())
        if len(text) <= max_chars:
            return text
        return text[: max_chars - 3] + "..."
