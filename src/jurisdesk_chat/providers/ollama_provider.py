import httpx
from loguru import logger
from tenacity import retry

from jurisdesk_chat.errors import ProviderRateLimitError, ProviderResponseError
from jurisdesk_chat.provider import AIResponse
from jurisdesk_chat.providers.common import default_retry_kwargs, to_chat_messages

_TIMEOUT_SECONDS = 300


class OllamaProvider:
    """Local models served by Ollama (``/api/chat``, non-streaming)."""

    def __init__(self, base_url: str, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    @retry(**default_retry_kwargs((httpx.TimeoutException, ProviderRateLimitError)))
    async def send(self, model: str, system_prompt: str, messages: list[dict]) -> AIResponse:
        body = {
            "model": model,
            "messages": [{"role": "system", "content": system_prompt}, *to_chat_messages(messages)],
            "stream": False,
        }
        logger.debug(f"API request: model={model}, messages={len(body['messages'])}, url={self._base_url}")

        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS, transport=self._transport) as client:
            response = await client.post(f"{self._base_url}/api/chat", json=body)

        if response.status_code == 429:
            raise ProviderRateLimitError(f"Ollama error: {response.reason_phrase}")
        if response.status_code >= 400:
            raise ProviderResponseError(f"Ollama error: {response.reason_phrase}")

        data = response.json()
        content = (data.get("message") or {}).get("content") or ""
        logger.debug(f"API response: len={len(content)}")
        return AIResponse(content=content)
