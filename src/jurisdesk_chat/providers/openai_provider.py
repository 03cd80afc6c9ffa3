import openai
from loguru import logger
from tenacity import retry

from jurisdesk_chat.cost_tracker import GPT5Usage
from jurisdesk_chat.memory.models import WebSearchResult
from jurisdesk_chat.provider import AIResponse
from jurisdesk_chat.providers.common import default_retry_kwargs, to_chat_messages
from jurisdesk_chat.request_config import GPT5RequestConfig

DEFAULT_MAX_TOKENS = 4096


def _to_openai_messages(system_prompt: str, messages: list[dict]) -> list[dict]:
    """Chat Completions format: system prompt first, then the conversation."""
    out: list[dict] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    out.extend(to_chat_messages(messages))
    return out


def _to_responses_input(system_prompt: str, messages: list[dict]) -> list[dict]:
    """Responses API input: GPT-5 takes the system prompt as a ``developer`` turn."""
    out: list[dict] = [{"role": "developer", "content": system_prompt}]
    out.extend(to_chat_messages(messages))
    return out


def build_responses_request(
    model: str,
    system_prompt: str,
    messages: list[dict],
    config: GPT5RequestConfig | None,
) -> dict:
    request: dict = {
        "model": model,
        "input": _to_responses_input(system_prompt, messages),
        "max_output_tokens": (config.max_output_tokens if config else 0) or DEFAULT_MAX_TOKENS,
    }
    if config is not None:
        # Always sent so "none" overrides the API default effort.
        request["reasoning"] = {"effort": config.reasoning_effort, "summary": "auto"}
        request["text"] = {"verbosity": config.verbosity}
        if config.use_web_search:
            request["tools"] = [{"type": "web_search"}]
    return request


def parse_responses_output(response) -> AIResponse:
    text_parts: list[str] = []
    reasoning_parts: list[str] = []
    web_results: list[WebSearchResult] = []

    for item in getattr(response, "output", None) or []:
        item_type = getattr(item, "type", None)
        if item_type == "message":
            for block in getattr(item, "content", None) or []:
                if getattr(block, "type", None) != "output_text" or not block.text:
                    continue
                text_parts.append(block.text)
                for annotation in getattr(block, "annotations", None) or []:
                    if getattr(annotation, "type", None) == "url_citation":
                        web_results.append(WebSearchResult(title=annotation.title or annotation.url, url=annotation.url))
        elif item_type == "reasoning":
            for block in getattr(item, "summary", None) or []:
                if getattr(block, "type", None) == "summary_text" and block.text:
                    reasoning_parts.append(block.text)

    usage = getattr(response, "usage", None)
    input_details = getattr(usage, "input_tokens_details", None)
    output_details = getattr(usage, "output_tokens_details", None)
    reasoning = "".join(reasoning_parts)
    return AIResponse(
        content="".join(text_parts),
        gpt5_usage=GPT5Usage(
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            reasoning_tokens=getattr(output_details, "reasoning_tokens", 0) or 0,
            cached_tokens=getattr(input_details, "cached_tokens", 0) or 0,
        ),
        reasoning_content=reasoning or None,
        web_search_results=_dedupe(web_results) or None,
    )


def _dedupe(results: list[WebSearchResult]) -> list[WebSearchResult]:
    seen: set[str] = set()
    unique: list[WebSearchResult] = []
    for result in results:
        if result.url in seen:
            continue
        seen.add(result.url)
        unique.append(result)
    return unique


class OpenAIProvider:
    def __init__(self, api_key: str):
        self._client = openai.AsyncOpenAI(api_key=api_key)

    @retry(**default_retry_kwargs((
        openai.RateLimitError,
        openai.APIConnectionError,
        openai.APITimeoutError,
    )))
    async def send_responses(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict],
        config: GPT5RequestConfig | None = None,
    ) -> AIResponse:
        """GPT-5 models via the Responses API (reasoning, verbosity, web search)."""
        request = build_responses_request(model, system_prompt, messages, config)
        logger.debug(
            f"API request: model={model}, max_output_tokens={request['max_output_tokens']}, "
            f"input={len(request['input'])}, reasoning={request.get('reasoning', {}).get('effort')}"
        )
        response = await self._client.responses.create(**request)
        result = parse_responses_output(response)
        usage = result.gpt5_usage
        logger.debug(
            f"API response: input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}, "
            f"reasoning_tokens={usage.reasoning_tokens}"
        )
        return result

    @retry(**default_retry_kwargs((
        openai.RateLimitError,
        openai.APIConnectionError,
        openai.APITimeoutError,
    )))
    async def send_chat(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict],
    ) -> AIResponse:
        """Older models via Chat Completions; no usage is reported upstream."""
        oai_messages = _to_openai_messages(system_prompt, messages)
        logger.debug(f"API request: model={model}, messages={len(oai_messages)}")
        response = await self._client.chat.completions.create(
            model=model,
            max_tokens=DEFAULT_MAX_TOKENS,
            messages=oai_messages,
        )
        text = response.choices[0].message.content if response.choices else ""
        logger.debug(f"API response: len={len(text or '')}")
        return AIResponse(content=text or "")
