from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from jurisdesk_chat.memory.store import LocalStore

DEFAULT_SEARCH_LIMIT = 20


@dataclass(frozen=True)
class SearchResult:
    session_id: int
    title: str
    snippet: str
    message_id: int | None = None
    created_at: str = ""

    @property
    def kind(self) -> str:
        return "session" if self.message_id is None else "message"


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _snippet(text: str, query: str, radius: int = 60) -> str:
    flat = " ".join(text.split())
    index = flat.lower().find(query.lower())
    if index < 0:
        return flat[: radius * 2]
    start = max(0, index - radius)
    end = min(len(flat), index + len(query) + radius)
    prefix = "..." if start > 0 else ""
    suffix = "..." if end < len(flat) else ""
    return f"{prefix}{flat[start:end]}{suffix}"


async def search_chats(store: LocalStore, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT) -> list[SearchResult]:
    """Sessions whose title matches, then messages whose content matches, newest first."""
    pattern = _like_pattern(query)
    session_rows = await store.select(
        """
        SELECT id, title, created_at FROM chat_sessions
        WHERE title LIKE ? ESCAPE '\\'
        ORDER BY created_at DESC, id DESC
        LIMIT ?
        """,
        (pattern, limit),
    )
    message_rows = await store.select(
        """
        SELECT m.id, m.session_id, m.content, m.created_at, s.title
        FROM chat_messages m
        JOIN chat_sessions s ON s.id = m.session_id
        WHERE m.content LIKE ? ESCAPE '\\'
        ORDER BY m.created_at DESC, m.id DESC
        LIMIT ?
        """,
        (pattern, limit),
    )

    results = [
        SearchResult(
            session_id=int(row["id"]),
            title=row["title"] or f"#{row['id']}",
            snippet=row["title"] or "",
            created_at=str(row["created_at"]),
        )
        for row in session_rows
    ]
    results.extend(
        SearchResult(
            session_id=int(row["session_id"]),
            title=row["title"] or f"#{row['session_id']}",
            snippet=_snippet(str(row["content"]), query),
            message_id=int(row["id"]),
            created_at=str(row["created_at"]),
        )
        for row in message_rows
    )
    return results[:limit]


class SearchController:
    """Search state with a stale-response guard.

    Every search takes a new request id; a response only lands if its id is
    still the latest when it completes. Clearing or blanking the query
    invalidates whatever is in flight.
    """

    def __init__(self, search_fn: Callable[[str], Awaitable[list[SearchResult]]]):
        self._search_fn = search_fn
        self._latest_request_id = 0
        self.query = ""
        self.results: list[SearchResult] = []
        self.is_open = False
        self.loading = False
        self.selected_index = -1

    def set_query(self, query: str) -> None:
        self.query = query

    async def search(self, query: str | None = None) -> None:
        if query is not None:
            self.query = query
        normalized = self.query.strip()

        if not normalized:
            self._latest_request_id += 1
            self.results = []
            self.loading = False
            return

        self._latest_request_id += 1
        request_id = self._latest_request_id
        self.loading = True
        try:
            results = await self._search_fn(normalized)
        except Exception as ex:
            if request_id != self._latest_request_id:
                return
            logger.error(f"Search error: {ex}")
            self.results = []
            self.loading = False
            return

        if request_id != self._latest_request_id:
            logger.debug(f"Discarding stale search results for {normalized!r}")
            return
        self.results = results
        self.loading = False
        self.selected_index = 0 if results else -1

    def clear(self) -> None:
        self._latest_request_id += 1
        self.query = ""
        self.results = []
        self.is_open = False
        self.loading = False
        self.selected_index = -1

    def set_open(self, is_open: bool) -> None:
        self.is_open = is_open
        if not is_open:
            self.selected_index = -1

    def set_selected_index(self, index: int) -> None:
        self.selected_index = index

    def select_next(self) -> None:
        if not self.results:
            return
        self.selected_index = self.selected_index + 1 if self.selected_index < len(self.results) - 1 else 0

    def select_previous(self) -> None:
        if not self.results:
            return
        self.selected_index = self.selected_index - 1 if self.selected_index > 0 else len(self.results) - 1

    @property
    def selected(self) -> SearchResult | None:
        if 0 <= self.selected_index < len(self.results):
            return self.results[self.selected_index]
        return None
