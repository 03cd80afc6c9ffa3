"""Per-family provider request configuration.

The intent profile proposes generation parameters; user settings gate the
expensive features (thinking, reasoning, web search); an explicit override
replaces whatever the merge produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from jurisdesk_chat.intent_classifier import (
    ClaudeIntentConfig,
    GeminiIntentConfig,
    GPT5IntentConfig,
    IntentConfig,
    ThinkingConfig,
)

DEFAULT_OLLAMA_URL = "http://localhost:11434"


@dataclass(frozen=True)
class ClaudeSettings:
    thinking_enabled: bool = True
    web_search_enabled: bool = True
    cache_enabled: bool = True


@dataclass(frozen=True)
class OpenAISettings:
    reasoning_enabled: bool = True
    web_search_enabled: bool = True
    cache_enabled: bool = True


@dataclass(frozen=True)
class GeminiSettings:
    thinking_enabled: bool = True
    web_search_enabled: bool = True


@dataclass(frozen=True)
class ClaudeRequestConfig:
    family: ClassVar[str] = "claude"
    thinking: ThinkingConfig
    use_web_search: bool
    use_cache: bool
    max_tokens: int


@dataclass(frozen=True)
class GPT5RequestConfig:
    family: ClassVar[str] = "gpt5"
    reasoning_effort: str
    verbosity: str
    max_output_tokens: int
    use_web_search: bool


@dataclass(frozen=True)
class GeminiRequestConfig:
    family: ClassVar[str] = "gemini"
    thinking_level: str
    max_output_tokens: int
    use_web_search: bool


RequestConfig = ClaudeRequestConfig | GPT5RequestConfig | GeminiRequestConfig


@dataclass(frozen=True)
class ClaudeOverride:
    family: ClassVar[str] = "claude"
    thinking: ThinkingConfig | None = None
    use_web_search: bool | None = None
    max_tokens: int | None = None


@dataclass(frozen=True)
class GPT5Override:
    family: ClassVar[str] = "gpt5"
    reasoning_effort: str | None = None
    verbosity: str | None = None
    max_output_tokens: int | None = None
    use_web_search: bool | None = None


@dataclass(frozen=True)
class GeminiOverride:
    family: ClassVar[str] = "gemini"
    thinking_level: str | None = None
    max_output_tokens: int | None = None
    use_web_search: bool | None = None


IntentOverride = ClaudeOverride | GPT5Override | GeminiOverride


@dataclass(frozen=True)
class SendOptions:
    api_key: str | None = None
    context: str | None = None
    ollama_url: str | None = None
    claude_settings: ClaudeSettings | None = None
    openai_settings: OpenAISettings | None = None
    gemini_settings: GeminiSettings | None = None
    override: IntentOverride | None = None


def provider_family(provider: str, model: str | None) -> str | None:
    if provider == "claude":
        return "claude"
    if provider == "openai" and (model or "").startswith("gpt-5"):
        return "gpt5"
    if provider == "gemini":
        return "gemini"
    return None


def build_claude_config(
    intent: ClaudeIntentConfig,
    settings: ClaudeSettings,
    override: ClaudeOverride | None = None,
) -> ClaudeRequestConfig:
    if settings.thinking_enabled and intent.thinking.enabled:
        thinking = intent.thinking
    else:
        thinking = ThinkingConfig(enabled=False, budget_tokens=0)
    use_web_search = settings.web_search_enabled and intent.use_web_search
    max_tokens = intent.max_tokens

    if override is not None:
        if override.thinking is not None:
            thinking = override.thinking
        if override.use_web_search is not None:
            use_web_search = override.use_web_search
        if override.max_tokens is not None:
            max_tokens = override.max_tokens

    return ClaudeRequestConfig(
        thinking=thinking,
        use_web_search=use_web_search,
        use_cache=settings.cache_enabled,
        max_tokens=max_tokens,
    )


def build_gpt5_config(
    intent: GPT5IntentConfig,
    settings: OpenAISettings,
    override: GPT5Override | None = None,
) -> GPT5RequestConfig:
    if settings.reasoning_enabled and intent.reasoning_effort != "none":
        reasoning_effort = intent.reasoning_effort
    else:
        reasoning_effort = "none"
    verbosity = intent.verbosity
    max_output_tokens = intent.max_output_tokens
    use_web_search = settings.web_search_enabled and intent.use_web_search

    if override is not None:
        if override.reasoning_effort is not None:
            reasoning_effort = override.reasoning_effort
        if override.verbosity is not None:
            verbosity = override.verbosity
        if override.max_output_tokens is not None:
            max_output_tokens = override.max_output_tokens
        if override.use_web_search is not None:
            use_web_search = override.use_web_search

    return GPT5RequestConfig(
        reasoning_effort=reasoning_effort,
        verbosity=verbosity,
        max_output_tokens=max_output_tokens,
        use_web_search=use_web_search,
    )


def build_gemini_config(
    intent: GeminiIntentConfig,
    settings: GeminiSettings,
    override: GeminiOverride | None = None,
) -> GeminiRequestConfig:
    if settings.thinking_enabled and intent.thinking_level != "minimal":
        thinking_level = intent.thinking_level
    else:
        thinking_level = "minimal"
    max_output_tokens = intent.max_output_tokens
    use_web_search = settings.web_search_enabled and intent.use_web_search

    if override is not None:
        if override.thinking_level is not None:
            thinking_level = override.thinking_level
        if override.max_output_tokens is not None:
            max_output_tokens = override.max_output_tokens
        if override.use_web_search is not None:
            use_web_search = override.use_web_search

    return GeminiRequestConfig(
        thinking_level=thinking_level,
        max_output_tokens=max_output_tokens,
        use_web_search=use_web_search,
    )


def build_request_config(
    family: str | None,
    intent: IntentConfig | None,
    options: SendOptions,
) -> RequestConfig | None:
    """Merge intent, settings and override for ``family``; ``None`` when no settings apply."""
    if family is None or intent is None:
        return None
    override = options.override if options.override is not None and options.override.family == family else None

    if family == "claude" and isinstance(intent, ClaudeIntentConfig):
        if options.claude_settings is None:
            return None
        return build_claude_config(intent, options.claude_settings, override)  # type: ignore[arg-type]
    if family == "gpt5" and isinstance(intent, GPT5IntentConfig):
        if options.openai_settings is None:
            return None
        return build_gpt5_config(intent, options.openai_settings, override)  # type: ignore[arg-type]
    if family == "gemini" and isinstance(intent, GeminiIntentConfig):
        if options.gemini_settings is None:
            return None
        return build_gemini_config(intent, options.gemini_settings, override)  # type: ignore[arg-type]
    return None
