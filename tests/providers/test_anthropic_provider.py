import asyncio
import unittest
from types import SimpleNamespace

from jurisdesk_chat.intent_classifier import ThinkingConfig
from jurisdesk_chat.providers.anthropic_provider import AnthropicProvider, build_request, parse_response
from jurisdesk_chat.request_config import ClaudeRequestConfig


class _FakeMessages:
    def __init__(self, create_response=None):
        self._create_response = create_response
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return self._create_response


class _FakeClient:
    def __init__(self, create_response=None):
        self.messages = _FakeMessages(create_response)


def _config(**overrides) -> ClaudeRequestConfig:
    values = {
        "thinking": ThinkingConfig(False, 0),
        "use_web_search": False,
        "use_cache": False,
        "max_tokens": 4096,
    }
    values.update(overrides)
    return ClaudeRequestConfig(**values)


class BuildRequestTests(unittest.TestCase):
    def test_plain_request(self) -> None:
        request = build_request("m", "sys", [{"role": "user", "content": "hi"}], None)
        self.assertEqual("sys", request["system"])
        self.assertEqual(4096, request["max_tokens"])
        self.assertNotIn("thinking", request)
        self.assertNotIn("tools", request)

    def test_cache_marks_system_block(self) -> None:
        request = build_request("m", "sys", [], _config(use_cache=True))
        self.assertEqual([{"type": "text", "text": "sys", "cache_control": {"type": "ephemeral"}}], request["system"])

    def test_thinking_leaves_room_for_answer(self) -> None:
        request = build_request("m", "sys", [], _config(thinking=ThinkingConfig(True, 16000), max_tokens=16384))
        self.assertEqual({"type": "enabled", "budget_tokens": 16000}, request["thinking"])
        self.assertEqual(20096, request["max_tokens"])

    def test_web_search_tool(self) -> None:
        request = build_request("m", "sys", [], _config(use_web_search=True))
        self.assertEqual("web_search_20250305", request["tools"][0]["type"])
        self.assertEqual(5, request["tools"][0]["max_uses"])

    def test_non_chat_roles_are_dropped(self) -> None:
        request = build_request(
            "m", "sys", [{"role": "system", "content": "x"}, {"role": "user", "content": "hi"}], None
        )
        self.assertEqual([{"role": "user", "content": "hi"}], request["messages"])


class ParseResponseTests(unittest.TestCase):
    def test_text_thinking_and_sources(self) -> None:
        response = SimpleNamespace(
            stop_reason="end_turn",
            usage=SimpleNamespace(
                input_tokens=100,
                output_tokens=40,
                cache_creation_input_tokens=None,
                cache_read_input_tokens=80,
            ),
            content=[
                SimpleNamespace(type="thinking", thinking="abcdefgh"),
                SimpleNamespace(
                    type="web_search_tool_result",
                    content=[
                        SimpleNamespace(type="web_search_result", title="STJ", url="https://stj.jus.br"),
                        SimpleNamespace(type="web_search_result", title=None, url="https://x"),
                    ],
                ),
                SimpleNamespace(type="text", text="Resposta "),
                SimpleNamespace(type="text", text="final"),
            ],
        )

        result = parse_response(response)

        self.assertEqual("Resposta final", result.content)
        self.assertEqual("abcdefgh", result.thinking_content)
        self.assertEqual(2, result.usage.thinking_tokens)
        self.assertEqual(80, result.usage.cache_read_input_tokens)
        self.assertEqual(0, result.usage.cache_creation_input_tokens)
        self.assertEqual(1, len(result.web_search_results))
        self.assertEqual("https://stj.jus.br", result.web_search_results[0].url)

    def test_search_error_content_is_ignored(self) -> None:
        response = SimpleNamespace(
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=1, output_tokens=1),
            content=[
                SimpleNamespace(type="web_search_tool_result", content=SimpleNamespace(error_code="max_uses_exceeded")),
                SimpleNamespace(type="text", text="ok"),
            ],
        )
        result = parse_response(response)
        self.assertIsNone(result.web_search_results)
        self.assertIsNone(result.thinking_content)


class AnthropicProviderTests(unittest.TestCase):
    def _make_provider(self, create_response=None) -> AnthropicProvider:
        provider = AnthropicProvider.__new__(AnthropicProvider)
        provider._client = _FakeClient(create_response)
        return provider

    def test_send(self) -> None:
        create_response = SimpleNamespace(
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=5, output_tokens=3),
            content=[SimpleNamespace(type="text", text="Olá")],
        )
        provider = self._make_provider(create_response)

        result = asyncio.run(provider.send("m", "sys", [{"role": "user", "content": "oi"}], _config()))

        self.assertEqual("Olá", result.content)
        self.assertEqual(5, result.usage.input_tokens)
        self.assertEqual(3, result.usage.output_tokens)
        self.assertEqual("m", provider._client.messages.requests[0]["model"])


if __name__ == "__main__":
    unittest.main()
