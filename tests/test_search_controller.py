import asyncio
import unittest

from tests.memory.base import LocalStoreTestCase
from jurisdesk_chat.search_controller import SearchController, SearchResult, search_chats


def _result(session_id: int, title: str = "Caso") -> SearchResult:
    return SearchResult(session_id=session_id, title=title, snippet=title)


class _ControlledSearch:
    """Each query blocks until released, so tests choose completion order."""

    def __init__(self) -> None:
        self.gates: dict[str, asyncio.Event] = {}
        self.results: dict[str, list[SearchResult]] = {}
        self.errors: dict[str, Exception] = {}
        self.queries: list[str] = []

    async def __call__(self, query: str) -> list[SearchResult]:
        self.queries.append(query)
        gate = self.gates.setdefault(query, asyncio.Event())
        await gate.wait()
        if query in self.errors:
            raise self.errors[query]
        return self.results.get(query, [])


class SearchControllerTests(unittest.TestCase):
    def test_late_response_for_old_query_is_discarded(self) -> None:
        search_fn = _ControlledSearch()
        search_fn.results = {"alim": [_result(1, "alimentos antigos")], "alimentos": [_result(2, "alimentos")]}
        controller = SearchController(search_fn)

        async def run() -> None:
            old = asyncio.create_task(controller.search("alim"))
            await asyncio.sleep(0)
            new = asyncio.create_task(controller.search("alimentos"))
            await asyncio.sleep(0)
            search_fn.gates["alimentos"].set()
            await new
            search_fn.gates["alim"].set()
            await old

        asyncio.run(run())

        self.assertEqual([2], [r.session_id for r in controller.results])
        self.assertFalse(controller.loading)
        self.assertEqual(0, controller.selected_index)

    def test_blank_query_clears_without_searching(self) -> None:
        search_fn = _ControlledSearch()
        controller = SearchController(search_fn)
        controller.results = [_result(1)]

        asyncio.run(controller.search("   "))

        self.assertEqual([], controller.results)
        self.assertEqual([], search_fn.queries)

    def test_clear_invalidates_in_flight_search(self) -> None:
        search_fn = _ControlledSearch()
        search_fn.results = {"tese": [_result(1)]}
        controller = SearchController(search_fn)

        async def run() -> None:
            pending = asyncio.create_task(controller.search("tese"))
            await asyncio.sleep(0)
            controller.clear()
            search_fn.gates["tese"].set()
            await pending

        asyncio.run(run())

        self.assertEqual([], controller.results)
        self.assertEqual("", controller.query)
        self.assertFalse(controller.loading)

    def test_error_clears_results(self) -> None:
        search_fn = _ControlledSearch()
        search_fn.errors = {"x": RuntimeError("database is locked")}
        controller = SearchController(search_fn)
        controller.results = [_result(1)]

        async def run() -> None:
            pending = asyncio.create_task(controller.search("x"))
            await asyncio.sleep(0)
            search_fn.gates["x"].set()
            await pending

        asyncio.run(run())

        self.assertEqual([], controller.results)
        self.assertFalse(controller.loading)

    def test_selection_wraps(self) -> None:
        controller = SearchController(_ControlledSearch())
        controller.results = [_result(1), _result(2), _result(3)]
        controller.set_selected_index(2)

        controller.select_next()
        self.assertEqual(0, controller.selected_index)
        controller.select_previous()
        self.assertEqual(2, controller.selected_index)
        self.assertEqual(3, controller.selected.session_id)

        controller.set_open(True)
        self.assertTrue(controller.is_open)
        controller.set_open(False)
        self.assertEqual(-1, controller.selected_index)
        self.assertIsNone(controller.selected)


class SearchChatsTests(LocalStoreTestCase):
    def test_matches_titles_and_message_content(self) -> None:
        async def run():
            alimentos = await self._sessions.create_session("ollama", "llama3.1", title="Ação de alimentos")
            other = await self._sessions.create_session("ollama", "llama3.1", title="Despejo")
            await self._sessions.append_user_message(other, "Cabe revisão de alimentos após o despejo?")
            await self._sessions.append_user_message(other, "Sem relação")
            return alimentos, other, await search_chats(self._store, "alimentos")

        alimentos, other, results = asyncio.run(run())

        self.assertEqual(2, len(results))
        self.assertEqual(("session", alimentos), (results[0].kind, results[0].session_id))
        self.assertEqual(("message", other), (results[1].kind, results[1].session_id))
        self.assertEqual("Despejo", results[1].title)
        self.assertIn("alimentos", results[1].snippet)

    def test_like_wildcards_are_literal(self) -> None:
        async def run():
            sid = await self._sessions.create_session("ollama", "llama3.1", title="Honorários")
            await self._sessions.append_user_message(sid, "taxa de 10% ao mês")
            await self._sessions.append_user_message(sid, "taxa de 10 reais")
            return await search_chats(self._store, "10%")

        results = asyncio.run(run())

        self.assertEqual(1, len(results))
        self.assertIn("10%", results[0].snippet)


if __name__ == "__main__":
    unittest.main()
