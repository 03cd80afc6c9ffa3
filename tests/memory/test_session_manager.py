import asyncio
import re

from tests.memory.base import LocalStoreTestCase
from jurisdesk_chat.memory.models import WebSearchResult


class SessionManagerTests(LocalStoreTestCase):
    def test_sessions_have_default_title(self) -> None:
        sid = asyncio.run(self._sessions.create_session("claude", "claude-sonnet-4-5-20250929"))
        session = asyncio.run(self._sessions.get_session(sid))
        self.assertIsNotNone(session)
        self.assertRegex(session.title, r"^Nova conversa - \d{2}/\d{2}/\d{4}$")
        self.assertEqual("claude", session.provider)
        self.assertIsNone(session.case_id)

    def test_create_session_keeps_case_and_title(self) -> None:
        sid = asyncio.run(self._sessions.create_session("ollama", "llama3.1", case_id=7, title="Caso Silva"))
        session = asyncio.run(self._sessions.get_session(sid))
        self.assertEqual(7, session.case_id)
        self.assertEqual("Caso Silva", session.title)

    def test_get_session_returns_none_when_missing(self) -> None:
        self.assertIsNone(asyncio.run(self._sessions.get_session(999)))

    def test_list_sessions_newest_first(self) -> None:
        first = asyncio.run(self._sessions.create_session("ollama", "llama3.1"))
        second = asyncio.run(self._sessions.create_session("ollama", "llama3.1"))
        self._set_created_at("chat_sessions", first, "2025-01-01 10:00:00")
        self._set_created_at("chat_sessions", second, "2025-01-02 10:00:00")

        sessions = asyncio.run(self._sessions.list_sessions())
        self.assertEqual([second, first], [s.id for s in sessions])

    def test_update_provider_model_keeps_history(self) -> None:
        sid = asyncio.run(self._sessions.create_session("ollama", "llama3.1"))
        asyncio.run(self._sessions.append_user_message(sid, "Olá"))

        changed = asyncio.run(self._sessions.update_provider_model(sid, "openai", "gpt-5-mini"))
        session = asyncio.run(self._sessions.get_session(sid))
        page = asyncio.run(self._sessions.load_page(sid, limit=10))

        self.assertEqual(1, changed)
        self.assertEqual(("openai", "gpt-5-mini"), (session.provider, session.model))
        self.assertEqual(["Olá"], [m.content for m in page])

    def test_delete_session_removes_messages(self) -> None:
        sid = asyncio.run(self._sessions.create_session("ollama", "llama3.1"))
        asyncio.run(self._sessions.append_user_message(sid, "hello"))

        asyncio.run(self._sessions.delete_session(sid))

        self.assertIsNone(asyncio.run(self._sessions.get_session(sid)))
        row = self._store.execute("SELECT COUNT(*) AS c FROM chat_messages WHERE session_id = ?", (sid,)).fetchone()
        self.assertEqual(0, int(row["c"]))

    def test_assistant_message_round_trips_metadata(self) -> None:
        sid = asyncio.run(self._sessions.create_session("claude", "claude-sonnet-4-5-20250929"))
        mid = asyncio.run(
            self._sessions.append_assistant_message(
                sid,
                "Resposta",
                thinking_content="pensando",
                web_search_results=[WebSearchResult(title="STJ", url="https://stj.jus.br")],
                cost_usd=0.0123,
                intent_profile="pesquisa",
            )
        )

        [message] = asyncio.run(self._sessions.load_page(sid, limit=5))
        self.assertEqual(mid, message.id)
        self.assertEqual("assistant", message.role)
        self.assertEqual("pensando", message.thinking_content)
        self.assertEqual([WebSearchResult(title="STJ", url="https://stj.jus.br")], message.web_search_results)
        self.assertAlmostEqual(0.0123, message.cost_usd)
        self.assertEqual("pesquisa", message.intent_profile)
        self.assertIsNotNone(message.timestamp.tzinfo)

    def test_load_page_is_chronological_with_offset(self) -> None:
        sid = asyncio.run(self._sessions.create_session("ollama", "llama3.1"))
        for i in range(5):
            asyncio.run(self._sessions.append_user_message(sid, f"m{i}"))

        newest = asyncio.run(self._sessions.load_page(sid, limit=2))
        older = asyncio.run(self._sessions.load_page(sid, limit=2, offset=2))

        self.assertEqual(["m3", "m4"], [m.content for m in newest])
        self.assertEqual(["m1", "m2"], [m.content for m in older])

    def test_build_session_summary_counts_messages_and_cost(self) -> None:
        sid = asyncio.run(self._sessions.create_session("claude", "claude-sonnet-4-5-20250929"))
        asyncio.run(self._sessions.append_user_message(sid, "pergunta"))
        asyncio.run(self._sessions.append_assistant_message(sid, "resposta   longa", cost_usd=0.5))
        asyncio.run(self._sessions.append_assistant_message(sid, "outra", cost_usd=0.25))

        summary = asyncio.run(self._sessions.build_session_summary(sid))

        self.assertEqual(3, summary["message_count"])
        self.assertEqual(1, summary["user_message_count"])
        self.assertEqual(2, summary["assistant_message_count"])
        self.assertAlmostEqual(0.75, summary["total_cost_usd"])
        self.assertEqual("outra", summary["last_message_preview"])
        self.assertTrue(re.match(r"^Nova conversa", summary["title"]))
