from __future__ import annotations

from dataclasses import dataclass, replace

from loguru import logger

from jurisdesk_chat.memory.models import ChatMessage
from jurisdesk_chat.memory.session_manager import SessionManager

PAGE_SIZE = 50
WINDOW_SIZE = 100


@dataclass(frozen=True)
class PaginationState:
    has_more: bool = False
    offset: int = 0
    is_loading_more: bool = False


class MessageWindow:
    """Bounded in-memory view over one session's messages.

    Holds at most ``window_size`` messages in chronological order. Older pages
    are pulled in on demand; anything beyond the cap is dropped from memory
    only, never from the database.
    """

    def __init__(
        self,
        sessions: SessionManager,
        *,
        page_size: int = PAGE_SIZE,
        window_size: int = WINDOW_SIZE,
    ):
        self._sessions = sessions
        self._page_size = max(1, page_size)
        self._window_size = max(1, window_size)
        self._session_id: int | None = None
        self._messages: list[ChatMessage] = []
        self._pagination = PaginationState()
        self._generation = 0

    @property
    def session_id(self) -> int | None:
        return self._session_id

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def pagination(self) -> PaginationState:
        return self._pagination

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def window_size(self) -> int:
        return self._window_size

    def reset(self) -> None:
        self._generation += 1
        self._session_id = None
        self._messages = []
        self._pagination = PaginationState()

    async def fetch_first_page(self, session_id: int) -> list[ChatMessage]:
        return await self._sessions.load_page(session_id, limit=self._page_size, offset=0)

    def replace(self, session_id: int, page: list[ChatMessage]) -> None:
        """Install ``page`` as the window of ``session_id``, invalidating older loads."""
        self._generation += 1
        self._session_id = session_id
        self._messages = self._cap(list(page))
        self._pagination = PaginationState(
            has_more=len(page) == self._page_size,
            offset=len(page),
        )

    async def load(self, session_id: int) -> None:
        page = await self.fetch_first_page(session_id)
        self.replace(session_id, page)

    async def load_more(self, session_id: int) -> int:
        if session_id != self._session_id:
            return 0
        if not self._pagination.has_more or self._pagination.is_loading_more:
            return 0

        generation = self._generation
        offset = self._pagination.offset
        self._pagination = replace(self._pagination, is_loading_more=True)
        try:
            older = await self._sessions.load_page(session_id, limit=self._page_size, offset=offset)
        except Exception:
            if generation == self._generation:
                self._pagination = replace(self._pagination, is_loading_more=False)
            raise

        if generation != self._generation:
            logger.debug(f"Discarding stale page for session {session_id} at offset {offset}")
            return 0

        known_ids = {m.id for m in self._messages}
        fresh = [m for m in older if m.id not in known_ids]
        self._messages = self._cap(fresh + self._messages)
        self._pagination = PaginationState(
            has_more=len(older) == self._page_size,
            offset=offset + len(older),
            is_loading_more=False,
        )
        return len(older)

    def append(self, message: ChatMessage) -> None:
        self._messages = self._cap([*self._messages, message])

    def _cap(self, messages: list[ChatMessage]) -> list[ChatMessage]:
        if len(messages) <= self._window_size:
            return messages
        return messages[-self._window_size :]
