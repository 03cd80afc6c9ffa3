from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from jurisdesk_chat.cost_tracker import UsageRecord, calculate_usage_cost
from jurisdesk_chat.errors import SessionNotFoundError, get_error_message
from jurisdesk_chat.intent_classifier import classify_intent
from jurisdesk_chat.memory.activity import ENTITY_MESSAGE, ENTITY_SESSION
from jurisdesk_chat.memory.models import ChatMessage, ChatSession, utc_now
from jurisdesk_chat.memory.session_manager import SessionManager
from jurisdesk_chat.memory.window import MessageWindow, PaginationState
from jurisdesk_chat.provider import DEFAULT_OLLAMA_MODEL, AIGateway
from jurisdesk_chat.request_config import SendOptions, build_request_config, provider_family

CONTEXT_LIMIT = 30

ActivityCallback = Callable[[str, int, str, str | None, dict[str, Any] | None], None]
UsageCallback = Callable[[int, UsageRecord], Awaitable[Any]]


@dataclass
class ChatState:
    sessions: list[ChatSession] = field(default_factory=list)
    active_session: ChatSession | None = None
    is_loading: bool = False
    error: str | None = None
    loading_sessions: bool = False
    creating_session: bool = False
    loading_session: bool = False
    deleting_session: bool = False
    current_intent_profile: str | None = None
    last_usage: UsageRecord | None = None
    last_cost: float | None = None


class ChatController:
    """Session lifecycle and message sending.

    State lives on the instance. Every database and provider call is an
    ``await``, so overlapping operations are possible; the in-flight guards
    below keep late results from overwriting newer state.
    """

    def __init__(
        self,
        sessions: SessionManager,
        gateway: AIGateway,
        *,
        window: MessageWindow | None = None,
        context_limit: int = CONTEXT_LIMIT,
        on_activity: ActivityCallback | None = None,
        on_backup: Callable[[], None] | None = None,
        on_usage: UsageCallback | None = None,
    ):
        self._sessions = sessions
        self._gateway = gateway
        self._window = window or MessageWindow(sessions)
        self._context_limit = max(0, context_limit)
        self._on_activity = on_activity
        self._on_backup = on_backup
        self._on_usage = on_usage
        self._state = ChatState()
        self._fetch_sessions_task: asyncio.Task | None = None
        self._load_generation = 0

    @property
    def state(self) -> ChatState:
        return self._state

    @property
    def messages(self) -> list[ChatMessage]:
        return self._window.messages

    @property
    def pagination(self) -> PaginationState:
        return self._window.pagination

    @property
    def active_session(self) -> ChatSession | None:
        return self._state.active_session

    async def fetch_sessions(self) -> None:
        """Refresh the session list; concurrent callers share one query."""
        if self._fetch_sessions_task is None:
            self._fetch_sessions_task = asyncio.ensure_future(self._fetch_sessions())
        await asyncio.shield(self._fetch_sessions_task)

    async def _fetch_sessions(self) -> None:
        self._state.loading_sessions = True
        self._state.error = None
        try:
            sessions = await self._sessions.list_sessions()
        except Exception as ex:
            logger.error(f"Failed to fetch sessions: {ex}")
            self._state.error = get_error_message(ex)
            self._state.loading_sessions = False
            return
        finally:
            self._fetch_sessions_task = None
        self._state.sessions = sessions
        self._state.loading_sessions = False

    async def create_session(self, provider: str, model: str | None, case_id: int | None = None) -> ChatSession:
        self._state.creating_session = True
        self._state.error = None
        try:
            session_id = await self._sessions.create_session(provider, model, case_id=case_id)
            session = await self._sessions.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
        except Exception as ex:
            logger.error(f"Failed to create session: {ex}")
            self._state.error = get_error_message(ex)
            self._state.creating_session = False
            raise

        self._load_generation += 1
        self._state.loading_session = False
        self._window.replace(session.id, [])
        self._state.sessions = [session, *self._state.sessions]
        self._state.active_session = session
        self._state.creating_session = False
        logger.info(f"Session created: id={session.id}, provider={provider}, model={model}")
        self._record_mutation(
            ENTITY_SESSION,
            session.id,
            "create",
            session.title,
            {"provider": provider, "model": model, "case_id": case_id},
        )
        return session

    async def load_session(self, session_id: int) -> None:
        self._load_generation += 1
        generation = self._load_generation
        self._state.loading_session = True
        self._state.error = None
        try:
            session = await self._sessions.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            page = await self._window.fetch_first_page(session_id)
        except Exception as ex:
            # a newer operation owns loading_session
            if generation != self._load_generation:
                return
            logger.error(f"Failed to load session {session_id}: {ex}")
            self._state.error = get_error_message(ex)
            self._state.loading_session = False
            return

        if generation != self._load_generation:
            logger.debug(f"Discarding superseded load of session {session_id}")
            return
        self._window.replace(session_id, page)
        self._state.active_session = session
        self._state.loading_session = False

    async def update_session_provider_model(self, session_id: int, provider: str, model: str | None) -> None:
        self._state.error = None
        try:
            await self._sessions.update_provider_model(session_id, provider, model)
        except Exception as ex:
            logger.error(f"Failed to update session {session_id}: {ex}")
            self._state.error = get_error_message(ex)
            raise

        self._state.sessions = [
            s.with_provider_model(provider, model) if s.id == session_id else s for s in self._state.sessions
        ]
        active = self._state.active_session
        if active is not None and active.id == session_id:
            self._state.active_session = active.with_provider_model(provider, model)
        self._record_mutation(
            ENTITY_SESSION,
            session_id,
            "update",
            active.title if active is not None and active.id == session_id else None,
            {"provider": provider, "model": model},
        )

    async def load_more_messages(self) -> int:
        active = self._state.active_session
        if active is None:
            return 0
        try:
            return await self._window.load_more(active.id)
        except Exception as ex:
            logger.error(f"Failed to load older messages for session {active.id}: {ex}")
            self._state.error = get_error_message(ex)
            return 0

    async def delete_session(self, session_id: int) -> None:
        self._state.deleting_session = True
        self._state.error = None
        title = next((s.title for s in self._state.sessions if s.id == session_id), None)
        try:
            await self._sessions.delete_session(session_id)
        except Exception as ex:
            logger.error(f"Failed to delete session {session_id}: {ex}")
            self._state.error = get_error_message(ex)
            self._state.deleting_session = False
            raise

        self._state.sessions = [s for s in self._state.sessions if s.id != session_id]
        active = self._state.active_session
        if active is not None and active.id == session_id:
            self._load_generation += 1
            self._state.loading_session = False
            self._state.active_session = None
            self._window.reset()
        self._state.deleting_session = False
        logger.info(f"Session deleted: id={session_id}")
        self._record_mutation(ENTITY_SESSION, session_id, "delete", title, None)

    def clear_messages(self) -> None:
        self._load_generation += 1
        self._state.loading_session = False
        self._state.active_session = None
        self._window.reset()

    async def send(self, content: str, options: SendOptions | None = None) -> ChatMessage | None:
        """Send ``content`` in the active session; returns the stored assistant message.

        Failures land in ``state.error``. A user message that was already
        persisted stays persisted when the provider call fails.
        """
        options = options or SendOptions()
        session = self._state.active_session
        if session is None:
            self._state.error = "No active session"
            return None

        family = provider_family(session.provider, session.model)
        intent = classify_intent(family, content) if family is not None else None
        profile = intent.profile if intent is not None else None
        history = self._window.messages

        self._state.is_loading = True
        self._state.error = None
        self._state.current_intent_profile = profile

        try:
            user_message_id = await self._sessions.append_user_message(session.id, content)
            if self._is_active(session.id):
                self._window.append(
                    ChatMessage(
                        id=user_message_id,
                        session_id=session.id,
                        role="user",
                        content=content,
                        timestamp=utc_now(),
                    )
                )

            recent = history[-self._context_limit:] if self._context_limit else []
            api_messages = [{"role": m.role, "content": m.content} for m in recent]
            api_messages.append({"role": "user", "content": content})

            config = build_request_config(family, intent, options)
            logger.debug(
                f"Sending: session={session.id}, provider={session.provider}, model={session.model}, "
                f"profile={profile}, context={len(api_messages)}"
            )
            response = await self._gateway.send_message(
                session.provider,
                session.model or DEFAULT_OLLAMA_MODEL,
                api_messages,
                api_key=options.api_key,
                context=options.context,
                config=config,
                ollama_url=options.ollama_url,
            )

            usage = response.usage_for(family)
            cost = calculate_usage_cost(usage) if usage is not None else None
            if usage is not None:
                await self._log_usage(session.id, usage)

            thinking = response.thinking_content or response.reasoning_content or None
            assistant_message_id = await self._sessions.append_assistant_message(
                session.id,
                response.content,
                thinking_content=thinking,
                web_search_results=response.web_search_results,
                cost_usd=cost,
                intent_profile=profile,
            )
        except Exception as ex:
            logger.error(f"Send failed in session {session.id}: {ex}")
            self._state.error = get_error_message(ex)
            self._state.is_loading = False
            self._state.current_intent_profile = None
            return None

        assistant_message = ChatMessage(
            id=assistant_message_id,
            session_id=session.id,
            role="assistant",
            content=response.content,
            timestamp=utc_now(),
            usage=usage,
            thinking_content=response.thinking_content,
            reasoning_content=response.reasoning_content,
            web_search_results=response.web_search_results,
            cost_usd=cost or None,
            intent_profile=profile,
        )
        if self._is_active(session.id):
            self._window.append(assistant_message)
        else:
            logger.debug(f"Session {session.id} no longer active; reply stored but not shown")

        self._state.is_loading = False
        self._state.current_intent_profile = None
        self._state.last_usage = usage
        self._state.last_cost = cost
        self._record_mutation(
            ENTITY_MESSAGE,
            assistant_message_id,
            "create",
            session.title,
            {"session_id": session.id, "intent_profile": profile, "cost_usd": cost},
        )
        return assistant_message

    def _is_active(self, session_id: int) -> bool:
        active = self._state.active_session
        return active is not None and active.id == session_id and self._window.session_id == session_id

    async def _log_usage(self, session_id: int, usage: UsageRecord) -> None:
        if self._on_usage is None:
            return
        try:
            await self._on_usage(session_id, usage)
        except Exception as ex:
            logger.warning(f"Failed to log usage for session {session_id}: {ex}")

    def _record_mutation(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        entity_name: str | None,
        details: dict[str, Any] | None,
    ) -> None:
        if self._on_activity is not None:
            try:
                self._on_activity(entity_type, entity_id, action, entity_name, details)
            except Exception as ex:
                logger.warning(f"Failed to log activity for {entity_type} {entity_id}: {ex}")
        if self._on_backup is not None:
            try:
                self._on_backup()
            except Exception as ex:
                logger.warning(f"Failed to trigger backup: {ex}")
