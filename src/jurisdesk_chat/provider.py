from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from jurisdesk_chat.cost_tracker import ClaudeUsage, GeminiUsage, GPT5Usage, UsageRecord
from jurisdesk_chat.errors import MissingApiKeyError, UnknownProviderError
from jurisdesk_chat.memory.models import WebSearchResult
from jurisdesk_chat.request_config import (
    DEFAULT_OLLAMA_URL,
    ClaudeRequestConfig,
    GeminiRequestConfig,
    GPT5RequestConfig,
    RequestConfig,
)
from jurisdesk_chat.system_prompt import build_system_prompt

DEFAULT_OLLAMA_MODEL = "llama3.1"


@dataclass(frozen=True)
class AIResponse:
    content: str
    usage: ClaudeUsage | None = None
    gpt5_usage: GPT5Usage | None = None
    gemini_usage: GeminiUsage | None = None
    thinking_content: str | None = None
    reasoning_content: str | None = None
    web_search_results: list[WebSearchResult] | None = None

    def usage_for(self, family: str | None) -> UsageRecord | None:
        """The usage variant matching ``family``, if the provider reported it."""
        if family == "claude":
            return self.usage
        if family == "gpt5":
            return self.gpt5_usage
        if family == "gemini":
            return self.gemini_usage
        return None


@runtime_checkable
class AIGateway(Protocol):
    async def send_message(
        self,
        provider: str,
        model: str,
        messages: list[dict],
        *,
        api_key: str | None = None,
        context: str | None = None,
        config: RequestConfig | None = None,
        ollama_url: str | None = None,
    ) -> AIResponse:
        """Send the conversation to ``provider`` and return its reply.

        ``messages`` are ``{"role", "content"}`` dicts, oldest first; the
        system prompt (plus optional document ``context``) is added here.
        """
        ...


class ProviderGateway:
    """Dispatches a request to the adapter for its provider.

    Adapters are created lazily and reused per API key.
    """

    def __init__(self) -> None:
        self._clients: dict[tuple[str, str], object] = {}

    async def send_message(
        self,
        provider: str,
        model: str,
        messages: list[dict],
        *,
        api_key: str | None = None,
        context: str | None = None,
        config: RequestConfig | None = None,
        ollama_url: str | None = None,
    ) -> AIResponse:
        system_prompt = build_system_prompt(context)

        if provider == "ollama":
            client = self._client_for("ollama", ollama_url or DEFAULT_OLLAMA_URL)
            return await client.send(model, system_prompt, messages)

        if provider == "claude":
            if not api_key:
                raise MissingApiKeyError("claude")
            client = self._client_for("claude", api_key)
            claude_config = config if isinstance(config, ClaudeRequestConfig) else None
            return await client.send(model, system_prompt, messages, claude_config)

        if provider == "openai":
            if not api_key:
                raise MissingApiKeyError("openai")
            client = self._client_for("openai", api_key)
            if model.startswith("gpt-5"):
                gpt5_config = config if isinstance(config, GPT5RequestConfig) else None
                return await client.send_responses(model, system_prompt, messages, gpt5_config)
            return await client.send_chat(model, system_prompt, messages)

        if provider == "gemini":
            if not api_key:
                raise MissingApiKeyError("gemini")
            client = self._client_for("gemini", api_key)
            gemini_config = config if isinstance(config, GeminiRequestConfig) else None
            return await client.send(model, system_prompt, messages, gemini_config)

        raise UnknownProviderError(provider)

    def _client_for(self, provider: str, credential: str):
        key = (provider, credential)
        client = self._clients.get(key)
        if client is None:
            client = create_provider(provider, credential)
            self._clients[key] = client
        return client


def create_provider(provider_name: str, credential: str):
    """Factory: create a provider adapter by name.

    ``credential`` is the API key, or the server URL for Ollama.
    """
    name = provider_name.strip().lower()
    if name == "claude":
        from jurisdesk_chat.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(credential)
    if name == "openai":
        from jurisdesk_chat.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(credential)
    if name == "gemini":
        from jurisdesk_chat.providers.gemini_provider import GeminiProvider
        return GeminiProvider(credential)
    if name == "ollama":
        from jurisdesk_chat.providers.ollama_provider import OllamaProvider
        return OllamaProvider(credential)
    raise UnknownProviderError(provider_name)
