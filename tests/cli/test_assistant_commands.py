import asyncio
import io
from contextlib import redirect_stdout

from tests.memory.base import LocalStoreTestCase
from jurisdesk_chat.app_config import RuntimeEnv, parse_app_config
from jurisdesk_chat.assistant import Assistant
from jurisdesk_chat.chat_controller import ChatController
from jurisdesk_chat.cost_tracker import ClaudeUsage
from jurisdesk_chat.memory.models import WebSearchResult
from jurisdesk_chat.provider import AIResponse
from jurisdesk_chat.search_controller import SearchController, search_chats


class _GatewayFake:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def send_message(self, provider, model, messages, **kwargs):
        self.calls.append((provider, model))
        if provider == "claude":
            return AIResponse(
                content="Segundo a Súmula 7...",
                usage=ClaudeUsage(input_tokens=1000, output_tokens=500),
                web_search_results=[WebSearchResult(title="STJ", url="https://stj.jus.br")],
            )
        return AIResponse(content="Olá! Como posso ajudar?")


class AssistantCommandTests(LocalStoreTestCase):
    def _make_assistant(self, config: dict | None = None, env: RuntimeEnv | None = None) -> Assistant:
        self._gateway = _GatewayFake()
        controller = ChatController(self._sessions, self._gateway)
        return Assistant(
            controller=controller,
            search=SearchController(lambda query: search_chats(self._store, query)),
            sessions=self._sessions,
            store=self._store,
            app=parse_app_config(config or {}),
            env=env or RuntimeEnv(anthropic_api_key="test", openai_api_key=None, google_api_key=None),
        )

    def _run(self, assistant: Assistant, *inputs: str, initialize: bool = True) -> str:
        async def go() -> None:
            if initialize:
                await assistant.initialize_session()
            for text in inputs:
                await assistant.run(text)

        buf = io.StringIO()
        with redirect_stdout(buf):
            asyncio.run(go())
        return buf.getvalue()

    def test_help_lists_commands(self) -> None:
        out = self._run(self._make_assistant(), "/help")
        self.assertIn("/session new [provider] [model]", out)
        self.assertIn("/search <text>", out)
        self.assertIn("/cost", out)

    def test_unknown_local_command_message(self) -> None:
        out = self._run(self._make_assistant(), "/unknown")
        self.assertIn("Unknown local command: /unknown", out)

    def test_plain_message_prints_reply(self) -> None:
        assistant = self._make_assistant()
        out = self._run(assistant, "Olá")
        self.assertIn("assistant> Olá! Como posso ajudar?", out)
        self.assertEqual([("ollama", "llama3.1")], self._gateway.calls)
        self.assertEqual(2, len(assistant.controller.messages))

    def test_claude_reply_shows_profile_cost_and_sources(self) -> None:
        assistant = self._make_assistant({"Provider": "claude", "Model": "claude-sonnet-4-5-20250929"})
        out = self._run(assistant, "Pesquise jurisprudência do STJ")
        self.assertIn("Pesquisa jurídica", out)
        self.assertIn("1 fontes", out)
        self.assertIn("STJ: https://stj.jus.br", out)
        self.assertIn("R$ ", out)

    def test_missing_api_key_blocks_send(self) -> None:
        assistant = self._make_assistant(
            {"Provider": "openai", "Model": "gpt-5-mini"},
            RuntimeEnv(anthropic_api_key=None, openai_api_key=None, google_api_key=None),
        )
        out = self._run(assistant, "Olá")
        self.assertIn("OPENAI_API_KEY is not set.", out)
        self.assertEqual([], self._gateway.calls)

    def test_session_new_and_list(self) -> None:
        out = self._run(self._make_assistant(), "/session new claude claude-sonnet-4-5-20250929", "/session list")
        self.assertIn("Started new session:", out)
        self.assertIn("Sessions:", out)
        self.assertIn("* Nova conversa", out)
        self.assertIn("provider=claude", out)

    def test_session_new_rejects_unknown_provider(self) -> None:
        out = self._run(self._make_assistant(), "/session new mistral")
        self.assertIn("Unknown provider: mistral", out)

    def test_session_resume_prints_summary(self) -> None:
        assistant = self._make_assistant()
        out = self._run(assistant, "Olá")
        first_id = assistant.controller.active_session.id

        out = self._run(assistant, "/session new", f"/session resume {first_id}", initialize=False)

        self.assertIn("Session summary:", out)
        self.assertIn("Messages: 2 (user=1, assistant=1)", out)
        self.assertIn("you> Olá", out)
        self.assertEqual(first_id, assistant.controller.active_session.id)

    def test_session_resume_missing(self) -> None:
        out = self._run(self._make_assistant(), "/session resume 999", "/session resume abc")
        self.assertIn("Session not found: 999", out)
        self.assertIn("Usage: /session resume <id>", out)

    def test_session_model_switch(self) -> None:
        assistant = self._make_assistant()
        out = self._run(assistant, "/session model gemini models/gemini-3-flash-preview")
        self.assertIn("now uses gemini/models/gemini-3-flash-preview", out)
        self.assertEqual("gemini", assistant.controller.active_session.provider)

    def test_session_delete(self) -> None:
        assistant = self._make_assistant()
        self._run(assistant)
        session_id = assistant.controller.active_session.id
        out = self._run(assistant, f"/session delete {session_id}", "Olá", initialize=False)
        self.assertIn(f"Deleted session {session_id}", out)
        self.assertIn("No active session", out)

    def test_more_without_older_messages(self) -> None:
        out = self._run(self._make_assistant(), "Olá", "/more")
        self.assertIn("No older messages.", out)

    def test_search(self) -> None:
        out = self._run(self._make_assistant(), "Prazo para contestação trabalhista", "/search contestação", "/search nada-aqui")
        self.assertIn("Results for: contestação", out)
        self.assertIn("> 1.", out)
        self.assertIn("No results for: nada-aqui", out)

    def test_cost(self) -> None:
        assistant = self._make_assistant(
            {"Provider": "claude", "Model": "claude-sonnet-4-5-20250929", "DailyLimitUsd": 10}
        )
        out = self._run(assistant, "Olá", "/cost")
        self.assertIn("Today:", out)
        self.assertIn("This month:", out)
        self.assertIn("Daily limit:", out)
        self.assertIn("Last reply:", out)

    def test_resume_missing_session_on_startup(self) -> None:
        assistant = self._make_assistant({"ResumeSessionId": 42})
        with self.assertRaises(ValueError):
            self._run(assistant)
