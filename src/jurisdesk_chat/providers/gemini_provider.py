import httpx
from loguru import logger
from tenacity import retry

from jurisdesk_chat.cost_tracker import GeminiUsage
from jurisdesk_chat.errors import ProviderRateLimitError, ProviderResponseError
from jurisdesk_chat.memory.models import WebSearchResult
from jurisdesk_chat.provider import AIResponse
from jurisdesk_chat.providers.common import default_retry_kwargs, to_chat_messages
from jurisdesk_chat.request_config import GeminiRequestConfig

_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
_TIMEOUT_SECONDS = 120
DEFAULT_MAX_TOKENS = 4096

# Gemini has no system role in this API; the prompt goes in as a primed first turn.
_PRIMER_REPLY = "Entendido. Estou pronto para auxiliar com questões jurídicas."


def build_request(system_prompt: str, messages: list[dict], config: GeminiRequestConfig | None) -> dict:
    contents: list[dict] = [
        {"role": "user", "parts": [{"text": system_prompt}]},
        {"role": "model", "parts": [{"text": _PRIMER_REPLY}]},
    ]
    for message in to_chat_messages(messages):
        role = "model" if message["role"] == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": message["content"]}]})

    generation_config: dict = {
        "maxOutputTokens": (config.max_output_tokens if config else 0) or DEFAULT_MAX_TOKENS,
        "thinkingConfig": {
            "thinkingLevel": config.thinking_level if config else "high",
            "includeThoughts": True,
        },
    }
    body: dict = {"contents": contents, "generationConfig": generation_config}
    if config is not None and config.use_web_search:
        body["tools"] = [{"googleSearch": {}}]
    return body


def parse_response(data: dict) -> AIResponse:
    text_parts: list[str] = []
    thinking_parts: list[str] = []
    web_results: list[WebSearchResult] = []

    for candidate in data.get("candidates") or []:
        for part in (candidate.get("content") or {}).get("parts") or []:
            text = part.get("text") or ""
            if part.get("thought"):
                thinking_parts.append(text)
            else:
                text_parts.append(text)
        grounding = candidate.get("groundingMetadata") or {}
        for chunk in grounding.get("groundingChunks") or []:
            web = chunk.get("web") or {}
            url = web.get("uri")
            if isinstance(url, str):
                web_results.append(WebSearchResult(title=str(web.get("title") or url), url=url))

    metadata = data.get("usageMetadata") or {}
    thinking = "".join(thinking_parts)
    return AIResponse(
        content="".join(text_parts),
        gemini_usage=GeminiUsage(
            input_tokens=int(metadata.get("promptTokenCount") or 0),
            output_tokens=int(metadata.get("candidatesTokenCount") or 0),
            thinking_tokens=int(metadata.get("thoughtsTokenCount") or 0),
            cached_tokens=int(metadata.get("cachedContentTokenCount") or 0),
        ),
        thinking_content=thinking or None,
        web_search_results=web_results or None,
    )


class GeminiProvider:
    def __init__(self, api_key: str, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._api_key = api_key
        self._transport = transport

    @retry(**default_retry_kwargs((httpx.TransportError, ProviderRateLimitError)))
    async def send(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict],
        config: GeminiRequestConfig | None = None,
    ) -> AIResponse:
        body = build_request(system_prompt, messages, config)
        headers = {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}
        url = f"{_GEMINI_BASE_URL}/{model}:generateContent"
        logger.debug(
            f"API request: model={model}, contents={len(body['contents'])}, "
            f"thinking_level={body['generationConfig']['thinkingConfig']['thinkingLevel']}, "
            f"web_search={'tools' in body}"
        )

        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS, transport=self._transport) as client:
            response = await client.post(url, headers=headers, json=body)

        if response.status_code == 429:
            raise ProviderRateLimitError(f"Gemini error: {response.text}")
        if response.status_code >= 400:
            raise ProviderResponseError(f"Gemini error: {response.text}")

        result = parse_response(response.json())
        usage = result.gemini_usage
        logger.debug(
            f"API response: input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}, "
            f"thinking_tokens={usage.thinking_tokens}"
        )
        return result
