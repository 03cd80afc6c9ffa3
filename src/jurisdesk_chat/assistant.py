from __future__ import annotations

import asyncio

from loguru import logger

from jurisdesk_chat import cost_tracker
from jurisdesk_chat.app_config import AppConfig, RuntimeEnv, api_key_env_var
from jurisdesk_chat.chat_controller import ChatController
from jurisdesk_chat.commands.router import CommandRouter
from jurisdesk_chat.intent_classifier import get_profile_description
from jurisdesk_chat.memory.models import PROVIDERS
from jurisdesk_chat.memory.session_manager import SessionManager
from jurisdesk_chat.memory.store import LocalStore
from jurisdesk_chat.search_controller import SearchController
from jurisdesk_chat.services.session_presenter import SessionPresenter


class Assistant:
    """Terminal front end over a :class:`ChatController`."""

    _LINE_PREFIX = "assistant> "

    def __init__(
        self,
        *,
        controller: ChatController,
        search: SearchController,
        sessions: SessionManager,
        store: LocalStore,
        app: AppConfig,
        env: RuntimeEnv,
    ):
        self._controller = controller
        self._search = search
        self._sessions = sessions
        self._store = store
        self._app = app
        self._env = env
        self._presenter = SessionPresenter(line_prefix=self._LINE_PREFIX, exchange_rate=app.exchange_rate)
        self._run_lock = asyncio.Lock()

        self._command_router = CommandRouter(
            on_help=self._on_help,
            on_session=self._handle_session_command,
            on_more=self._handle_more_command,
            on_search=self._handle_search_command,
            on_cost=self._handle_cost_command,
            on_unknown=self._on_unknown_command,
        )

    @property
    def controller(self) -> ChatController:
        return self._controller

    async def initialize_session(self) -> None:
        await self._controller.fetch_sessions()
        if self._app.resume_session_id is not None:
            await self._controller.load_session(self._app.resume_session_id)
            if self._controller.active_session is None:
                raise ValueError(f"Resume session not found: {self._app.resume_session_id}")
            logger.info(
                f"Resumed session {self._app.resume_session_id} "
                f"with {len(self._controller.messages)} messages"
            )
            return
        await self._controller.create_session(self._app.provider_name, self._app.model, self._app.case_id)

    async def run(self, user_message: str) -> None:
        async with self._run_lock:
            if await self._command_router.try_handle(user_message):
                return
            await self._send(user_message)

    async def _send(self, text: str) -> None:
        session = self._controller.active_session
        if session is None:
            print(f"{self._LINE_PREFIX}No active session. Use /session new or /session resume <id>.")
            return

        if session.provider in ("claude", "openai", "gemini") and not self._env.api_key_for(session.provider):
            print(f"{self._LINE_PREFIX}{api_key_env_var(session.provider)} is not set.")
            return

        if await cost_tracker.is_daily_limit_reached(self._store, self._app.daily_limit_usd):
            print(f"{self._LINE_PREFIX}Warning: daily cost limit of ${self._app.daily_limit_usd:.2f} reached.")

        reply = await self._controller.send(text, self._app.send_options(session.provider, self._env))
        state = self._controller.state
        if reply is None:
            print(f"{self._LINE_PREFIX}Error: {state.error}")
            return

        if reply.thinking_content or reply.reasoning_content:
            logger.debug(f"Reasoning: {(reply.thinking_content or reply.reasoning_content)[:500]}")
        for line in self._presenter.format_message_lines(reply):
            print(line)
        for line in self._presenter.format_sources(reply):
            print(line)

    async def _on_help(self) -> None:
        self._print_help()

    def _on_unknown_command(self, trimmed: str) -> None:
        print(f"{self._LINE_PREFIX}Unknown local command: {trimmed}")

    def _print_help(self) -> None:
        print(f"{self._LINE_PREFIX}Available commands:")
        print(f"{self._LINE_PREFIX}- /help")
        print(f"{self._LINE_PREFIX}- /session")
        print(f"{self._LINE_PREFIX}- /session new [provider] [model]")
        print(f"{self._LINE_PREFIX}- /session list")
        print(f"{self._LINE_PREFIX}- /session resume <id>")
        print(f"{self._LINE_PREFIX}- /session delete <id>")
        print(f"{self._LINE_PREFIX}- /session model <provider> [model]")
        print(f"{self._LINE_PREFIX}- /more")
        print(f"{self._LINE_PREFIX}- /search <text>")
        print(f"{self._LINE_PREFIX}- /cost")

    async def _handle_session_command(self, command: str) -> None:
        parts = command.split()
        if len(parts) == 1:
            session = self._controller.active_session
            if session is None:
                print(f"{self._LINE_PREFIX}Current session: none")
                return
            print(self._presenter.format_session_header(session, len(self._controller.messages)))
            if self._controller.state.current_intent_profile:
                print(f"{self._LINE_PREFIX}Working on: {get_profile_description(self._controller.state.current_intent_profile)}")
            return

        action = parts[1]
        if action == "list":
            await self._controller.fetch_sessions()
            sessions = self._controller.state.sessions
            if not sessions:
                print(f"{self._LINE_PREFIX}No sessions found.")
                return
            active = self._controller.active_session
            print(f"{self._LINE_PREFIX}Sessions:")
            for s in sessions:
                print(self._presenter.format_session_list_entry(s, active_session_id=active.id if active else None))
            return

        if action == "new":
            provider = parts[2].lower() if len(parts) >= 3 else self._app.provider_name
            model = parts[3] if len(parts) >= 4 else (self._app.model if provider == self._app.provider_name else None)
            if provider not in PROVIDERS:
                print(f"{self._LINE_PREFIX}Unknown provider: {provider}")
                return
            try:
                session = await self._controller.create_session(provider, model, self._app.case_id)
            except Exception as ex:
                print(f"{self._LINE_PREFIX}Could not create session: {ex}")
                return
            print(f"{self._LINE_PREFIX}Started new session: {session.title} (id={session.id})")
            return

        if action in ("resume", "delete") and len(parts) == 3:
            try:
                session_id = int(parts[2])
            except ValueError:
                print(f"{self._LINE_PREFIX}Usage: /session {action} <id>")
                return
            if action == "resume":
                await self._resume(session_id)
            else:
                await self._delete(session_id)
            return

        if action == "model" and len(parts) in (3, 4):
            await self._change_model(parts[2].lower(), parts[3] if len(parts) == 4 else None)
            return

        print(
            f"{self._LINE_PREFIX}Usage: /session | /session new [provider] [model] | /session list | "
            "/session resume <id> | /session delete <id> | /session model <provider> [model]"
        )

    async def _resume(self, session_id: int) -> None:
        await self._controller.load_session(session_id)
        state = self._controller.state
        if state.error:
            print(f"{self._LINE_PREFIX}{state.error}: {session_id}")
            return
        session = self._controller.active_session
        if session is None or session.id != session_id:
            return
        print(self._presenter.format_session_header(session, len(self._controller.messages)))
        for line in self._presenter.format_summary_lines(await self._sessions.build_session_summary(session_id)):
            print(line)
        for message in self._controller.messages[-6:]:
            for line in self._presenter.format_message_lines(message):
                print(line)

    async def _delete(self, session_id: int) -> None:
        try:
            await self._controller.delete_session(session_id)
        except Exception as ex:
            print(f"{self._LINE_PREFIX}Could not delete session {session_id}: {ex}")
            return
        print(f"{self._LINE_PREFIX}Deleted session {session_id}")

    async def _change_model(self, provider: str, model: str | None) -> None:
        session = self._controller.active_session
        if session is None:
            print(f"{self._LINE_PREFIX}No active session")
            return
        if provider not in PROVIDERS:
            print(f"{self._LINE_PREFIX}Unknown provider: {provider}")
            return
        try:
            await self._controller.update_session_provider_model(session.id, provider, model)
        except Exception as ex:
            print(f"{self._LINE_PREFIX}Could not update session: {ex}")
            return
        print(f"{self._LINE_PREFIX}Session {session.id} now uses {provider}/{model or '-'}")

    async def _handle_more_command(self) -> None:
        if self._controller.active_session is None:
            print(f"{self._LINE_PREFIX}No active session")
            return
        before = self._controller.messages
        loaded = await self._controller.load_more_messages()
        if self._controller.state.error:
            print(f"{self._LINE_PREFIX}Error: {self._controller.state.error}")
            return
        if loaded == 0:
            print(f"{self._LINE_PREFIX}No older messages.")
            return
        known = {m.id for m in before}
        older = [m for m in self._controller.messages if m.id not in known]
        print(f"{self._LINE_PREFIX}Loaded {loaded} older messages:")
        for message in older:
            for line in self._presenter.format_message_lines(message):
                print(line)

    async def _handle_search_command(self, query: str) -> None:
        if not query:
            self._search.clear()
            print(f"{self._LINE_PREFIX}Usage: /search <text>")
            return
        await self._search.search(query)
        if not self._search.results:
            print(f"{self._LINE_PREFIX}No results for: {query}")
            return
        print(f"{self._LINE_PREFIX}Results for: {query}")
        for index, result in enumerate(self._search.results):
            print(self._presenter.format_search_result(index, result, selected=index == self._search.selected_index))

    async def _handle_cost_command(self) -> None:
        daily = await cost_tracker.get_daily_summary(self._store)
        monthly = await cost_tracker.get_monthly_summary(self._store)
        for line in self._presenter.format_cost_summary_lines("Today", daily):
            print(line)
        for line in self._presenter.format_cost_summary_lines("This month", monthly):
            print(line)
        session = self._controller.active_session
        if session is not None:
            session_cost = await cost_tracker.get_session_cost(self._store, session.id)
            print(f"{self._LINE_PREFIX}This session: {self._presenter.format_cost_pair(session_cost)}")
        if self._app.daily_limit_usd:
            percentage = await cost_tracker.get_daily_limit_percentage(self._store, self._app.daily_limit_usd)
            print(f"{self._LINE_PREFIX}Daily limit: {percentage:.0f}% of ${self._app.daily_limit_usd:.2f}")
        last_cost = self._controller.state.last_cost
        if last_cost is not None:
            print(f"{self._LINE_PREFIX}Last reply: {self._presenter.format_cost_pair(last_cost)}")
