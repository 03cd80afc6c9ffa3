import unittest

from jurisdesk_chat.intent_classifier import (
    ThinkingConfig,
    classify_intent_claude,
    classify_intent_gemini,
    classify_intent_gpt5,
)
from jurisdesk_chat.request_config import (
    ClaudeOverride,
    ClaudeRequestConfig,
    ClaudeSettings,
    GeminiOverride,
    GeminiSettings,
    GPT5Override,
    GPT5RequestConfig,
    OpenAISettings,
    SendOptions,
    build_claude_config,
    build_gemini_config,
    build_gpt5_config,
    build_request_config,
    provider_family,
)

_DRAFT = "Elabore uma petição inicial"
_RESEARCH = "Pesquise jurisprudência do STJ"


class ProviderFamilyTests(unittest.TestCase):
    def test_families(self) -> None:
        self.assertEqual("claude", provider_family("claude", "claude-sonnet-4-5-20250929"))
        self.assertEqual("gpt5", provider_family("openai", "gpt-5-mini"))
        self.assertIsNone(provider_family("openai", "gpt-4o"))
        self.assertIsNone(provider_family("openai", None))
        self.assertEqual("gemini", provider_family("gemini", "models/gemini-3-pro-preview"))
        self.assertIsNone(provider_family("ollama", "llama3.1"))


class ClaudeConfigTests(unittest.TestCase):
    def test_intent_passes_through_when_enabled(self) -> None:
        config = build_claude_config(classify_intent_claude(_DRAFT), ClaudeSettings())
        self.assertEqual(ThinkingConfig(True, 16000), config.thinking)
        self.assertEqual(16384, config.max_tokens)
        self.assertTrue(config.use_cache)

    def test_settings_disable_thinking_and_search(self) -> None:
        settings = ClaudeSettings(thinking_enabled=False, web_search_enabled=False, cache_enabled=False)
        draft = build_claude_config(classify_intent_claude(_DRAFT), settings)
        research = build_claude_config(classify_intent_claude(_RESEARCH), settings)

        self.assertEqual(ThinkingConfig(False, 0), draft.thinking)
        self.assertFalse(draft.use_cache)
        self.assertFalse(research.use_web_search)

    def test_override_wins_over_settings(self) -> None:
        settings = ClaudeSettings(thinking_enabled=False, web_search_enabled=False)
        override = ClaudeOverride(thinking=ThinkingConfig(True, 2048), use_web_search=True, max_tokens=1000)

        config = build_claude_config(classify_intent_claude("Oi"), settings, override)

        self.assertEqual(ThinkingConfig(True, 2048), config.thinking)
        self.assertTrue(config.use_web_search)
        self.assertEqual(1000, config.max_tokens)

    def test_override_false_is_applied(self) -> None:
        override = ClaudeOverride(use_web_search=False)
        config = build_claude_config(classify_intent_claude(_RESEARCH), ClaudeSettings(), override)
        self.assertFalse(config.use_web_search)


class GPT5ConfigTests(unittest.TestCase):
    def test_reasoning_disabled_forces_none(self) -> None:
        config = build_gpt5_config(classify_intent_gpt5(_DRAFT), OpenAISettings(reasoning_enabled=False))
        self.assertEqual("none", config.reasoning_effort)
        self.assertEqual("high", config.verbosity)
        self.assertEqual(8192, config.max_output_tokens)

    def test_override_fields(self) -> None:
        override = GPT5Override(reasoning_effort="low", verbosity="low", max_output_tokens=512, use_web_search=True)
        config = build_gpt5_config(classify_intent_gpt5(_DRAFT), OpenAISettings(), override)
        self.assertEqual(
            GPT5RequestConfig(reasoning_effort="low", verbosity="low", max_output_tokens=512, use_web_search=True),
            config,
        )


class GeminiConfigTests(unittest.TestCase):
    def test_thinking_disabled_forces_minimal(self) -> None:
        config = build_gemini_config(classify_intent_gemini(_DRAFT), GeminiSettings(thinking_enabled=False))
        self.assertEqual("minimal", config.thinking_level)

    def test_web_search_gated_by_settings(self) -> None:
        intent = classify_intent_gemini(_RESEARCH)
        self.assertTrue(build_gemini_config(intent, GeminiSettings()).use_web_search)
        self.assertFalse(build_gemini_config(intent, GeminiSettings(web_search_enabled=False)).use_web_search)

    def test_override_thinking_level(self) -> None:
        config = build_gemini_config(classify_intent_gemini("Oi"), GeminiSettings(), GeminiOverride(thinking_level="high"))
        self.assertEqual("high", config.thinking_level)


class BuildRequestConfigTests(unittest.TestCase):
    def test_no_family_or_settings_gives_none(self) -> None:
        intent = classify_intent_claude(_DRAFT)
        self.assertIsNone(build_request_config(None, None, SendOptions()))
        self.assertIsNone(build_request_config("claude", intent, SendOptions()))

    def test_claude_config_is_built(self) -> None:
        options = SendOptions(claude_settings=ClaudeSettings())
        config = build_request_config("claude", classify_intent_claude(_DRAFT), options)
        self.assertIsInstance(config, ClaudeRequestConfig)

    def test_override_for_other_family_is_ignored(self) -> None:
        options = SendOptions(claude_settings=ClaudeSettings(), override=GPT5Override(max_output_tokens=10))
        config = build_request_config("claude", classify_intent_claude(_DRAFT), options)
        self.assertEqual(16384, config.max_tokens)

    def test_mismatched_intent_gives_none(self) -> None:
        options = SendOptions(openai_settings=OpenAISettings())
        self.assertIsNone(build_request_config("gpt5", classify_intent_claude(_DRAFT), options))


if __name__ == "__main__":
    unittest.main()
