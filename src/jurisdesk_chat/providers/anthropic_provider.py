import anthropic
from loguru import logger
from tenacity import retry

from jurisdesk_chat.cost_tracker import ClaudeUsage
from jurisdesk_chat.memory.models import WebSearchResult
from jurisdesk_chat.provider import AIResponse
from jurisdesk_chat.providers.common import default_retry_kwargs, estimate_tokens, to_chat_messages
from jurisdesk_chat.request_config import ClaudeRequestConfig

DEFAULT_MAX_TOKENS = 4096
WEB_SEARCH_MAX_USES = 5


def build_request(
    model: str,
    system_prompt: str,
    messages: list[dict],
    config: ClaudeRequestConfig | None,
) -> dict:
    max_tokens = (config.max_tokens if config else 0) or DEFAULT_MAX_TOKENS

    system: str | list[dict] = system_prompt
    if config is not None and config.use_cache:
        system = [{"type": "text", "text": system_prompt, "cache_control": {"type": "ephemeral"}}]

    request: dict = {
        "model": model,
        "max_tokens": max_tokens,
        "system": system,
        "messages": to_chat_messages(messages),
    }

    if config is not None and config.thinking.enabled and config.thinking.budget_tokens > 0:
        request["thinking"] = {"type": "enabled", "budget_tokens": config.thinking.budget_tokens}
        # max_tokens must leave room for the answer after the thinking budget
        request["max_tokens"] = max(max_tokens, config.thinking.budget_tokens + DEFAULT_MAX_TOKENS)

    if config is not None and config.use_web_search:
        request["tools"] = [{"type": "web_search_20250305", "name": "web_search", "max_uses": WEB_SEARCH_MAX_USES}]

    return request


def parse_response(response) -> AIResponse:
    text_parts: list[str] = []
    thinking_parts: list[str] = []
    web_results: list[WebSearchResult] = []

    for block in response.content:
        block_type = getattr(block, "type", None)
        if block_type == "text" and block.text:
            text_parts.append(block.text)
        elif block_type == "thinking" and getattr(block, "thinking", None):
            thinking_parts.append(block.thinking)
        elif block_type == "web_search_tool_result":
            content = getattr(block, "content", None)
            if isinstance(content, list):
                for item in content:
                    title = getattr(item, "title", None)
                    url = getattr(item, "url", None)
                    if isinstance(title, str) and isinstance(url, str):
                        web_results.append(WebSearchResult(title=title, url=url))

    thinking_content = "".join(thinking_parts)
    usage = response.usage
    return AIResponse(
        content="".join(text_parts),
        usage=ClaudeUsage(
            input_tokens=usage.input_tokens or 0,
            output_tokens=usage.output_tokens or 0,
            thinking_tokens=estimate_tokens(thinking_content),
            cache_creation_input_tokens=getattr(usage, "cache_creation_input_tokens", None) or 0,
            cache_read_input_tokens=getattr(usage, "cache_read_input_tokens", None) or 0,
        ),
        thinking_content=thinking_content or None,
        web_search_results=web_results or None,
    )


class AnthropicProvider:
    def __init__(self, api_key: str):
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    @retry(**default_retry_kwargs((
        anthropic.RateLimitError,
        anthropic.APIConnectionError,
        anthropic.APITimeoutError,
    )))
    async def send(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict],
        config: ClaudeRequestConfig | None = None,
    ) -> AIResponse:
        request = build_request(model, system_prompt, messages, config)
        logger.debug(
            f"API request: model={model}, max_tokens={request['max_tokens']}, "
            f"messages={len(request['messages'])}, thinking={'thinking' in request}, "
            f"web_search={'tools' in request}"
        )
        response = await self._client.messages.create(**request)
        result = parse_response(response)
        usage = result.usage
        logger.debug(
            f"API response: stop_reason={response.stop_reason}, "
            f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}"
        )
        return result
