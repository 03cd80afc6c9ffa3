from __future__ import annotations

from collections.abc import Awaitable, Callable


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_session: Callable[[str], Awaitable[None]],
        on_more: Callable[[], Awaitable[None]],
        on_search: Callable[[str], Awaitable[None]],
        on_cost: Callable[[], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_session = on_session
        self._on_more = on_more
        self._on_search = on_search
        self._on_cost = on_cost
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        command = trimmed.split(maxsplit=1)[0]
        if command == "/help":
            await self._on_help()
            return True
        if command == "/session":
            await self._on_session(trimmed)
            return True
        if command == "/more":
            await self._on_more()
            return True
        if command == "/search":
            await self._on_search(trimmed.partition("/search")[2].strip())
            return True
        if command == "/cost":
            await self._on_cost()
            return True

        self._on_unknown(trimmed)
        return True
