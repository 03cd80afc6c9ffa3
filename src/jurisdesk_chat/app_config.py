from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from jurisdesk_chat.memory.models import PROVIDERS
from jurisdesk_chat.provider import DEFAULT_OLLAMA_MODEL
from jurisdesk_chat.request_config import (
    DEFAULT_OLLAMA_URL,
    ClaudeSettings,
    GeminiSettings,
    OpenAISettings,
    SendOptions,
)

_API_KEY_ENV_VARS = {
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}


@dataclass
class RuntimeEnv:
    anthropic_api_key: str | None
    openai_api_key: str | None
    google_api_key: str | None

    def api_key_for(self, provider: str) -> str | None:
        if provider == "claude":
            return self.anthropic_api_key
        if provider == "openai":
            return self.openai_api_key
        if provider == "gemini":
            return self.google_api_key
        return None


@dataclass
class AppConfig:
    provider_name: str
    model: str | None
    db_path: str
    case_id: int | None
    resume_session_id: int | None
    page_size: int
    context_limit: int
    window_size: int
    claude_thinking_enabled: bool
    claude_web_search_enabled: bool
    claude_cache_enabled: bool
    openai_reasoning_enabled: bool
    openai_web_search_enabled: bool
    openai_cache_enabled: bool
    gemini_thinking_enabled: bool
    gemini_web_search_enabled: bool
    ollama_url: str
    exchange_rate: float
    daily_limit_usd: float | None
    usage_retention_days: int
    backup_enabled: bool
    backup_path: str
    max_backups: int
    backup_debounce_seconds: float
    backup_min_interval_seconds: float
    log_level: str
    log_consumers: list | None

    def claude_settings(self) -> ClaudeSettings:
        return ClaudeSettings(
            thinking_enabled=self.claude_thinking_enabled,
            web_search_enabled=self.claude_web_search_enabled,
            cache_enabled=self.claude_cache_enabled,
        )

    def openai_settings(self) -> OpenAISettings:
        return OpenAISettings(
            reasoning_enabled=self.openai_reasoning_enabled,
            web_search_enabled=self.openai_web_search_enabled,
            cache_enabled=self.openai_cache_enabled,
        )

    def gemini_settings(self) -> GeminiSettings:
        return GeminiSettings(
            thinking_enabled=self.gemini_thinking_enabled,
            web_search_enabled=self.gemini_web_search_enabled,
        )

    def send_options(self, provider: str, env: RuntimeEnv) -> SendOptions:
        return SendOptions(
            api_key=env.api_key_for(provider),
            ollama_url=self.ollama_url,
            claude_settings=self.claude_settings(),
            openai_settings=self.openai_settings(),
            gemini_settings=self.gemini_settings(),
        )


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def _to_optional_int(value: object) -> int | None:
    if value is None or str(value).strip() == "":
        return None
    return int(value)


def _to_optional_float(value: object) -> float | None:
    if value is None or str(value).strip() == "":
        return None
    return float(value)


def parse_app_config(config: dict) -> AppConfig:
    provider_name = str(config.get("Provider", "ollama")).strip().lower()
    if provider_name not in PROVIDERS:
        raise ValueError(f"Unknown provider: {provider_name!r}. Supported: {', '.join(PROVIDERS)}")
    default_model = DEFAULT_OLLAMA_MODEL if provider_name == "ollama" else None

    return AppConfig(
        provider_name=provider_name,
        model=config.get("Model") or default_model,
        db_path=str(config.get("DbPath", ".jurisdesk/jurisdesk.db")),
        case_id=_to_optional_int(config.get("CaseId")),
        resume_session_id=_to_optional_int(config.get("ResumeSessionId")),
        page_size=int(config.get("PageSize", 50)),
        context_limit=int(config.get("ContextLimit", 30)),
        window_size=int(config.get("WindowSize", 100)),
        claude_thinking_enabled=_to_bool(config.get("ClaudeThinkingEnabled"), default=True),
        claude_web_search_enabled=_to_bool(config.get("ClaudeWebSearchEnabled"), default=True),
        claude_cache_enabled=_to_bool(config.get("ClaudeCacheEnabled"), default=True),
        openai_reasoning_enabled=_to_bool(config.get("OpenAIReasoningEnabled"), default=True),
        openai_web_search_enabled=_to_bool(config.get("OpenAIWebSearchEnabled"), default=True),
        openai_cache_enabled=_to_bool(config.get("OpenAICacheEnabled"), default=True),
        gemini_thinking_enabled=_to_bool(config.get("GeminiThinkingEnabled"), default=True),
        gemini_web_search_enabled=_to_bool(config.get("GeminiWebSearchEnabled"), default=True),
        ollama_url=str(config.get("OllamaUrl") or DEFAULT_OLLAMA_URL),
        exchange_rate=float(config.get("ExchangeRate", 6.0)),
        daily_limit_usd=_to_optional_float(config.get("DailyLimitUsd")),
        usage_retention_days=int(config.get("UsageRetentionDays", 90)),
        backup_enabled=_to_bool(config.get("BackupEnabled"), default=True),
        backup_path=str(config.get("BackupPath", ".jurisdesk/backups")),
        max_backups=int(config.get("MaxBackups", 10)),
        backup_debounce_seconds=float(config.get("BackupDebounceSeconds", 5.0)),
        backup_min_interval_seconds=float(config.get("BackupMinIntervalSeconds", 60.0)),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env() -> RuntimeEnv:
    return RuntimeEnv(
        anthropic_api_key=os.environ.get(_API_KEY_ENV_VARS["claude"]) or None,
        openai_api_key=os.environ.get(_API_KEY_ENV_VARS["openai"]) or None,
        google_api_key=os.environ.get(_API_KEY_ENV_VARS["gemini"]) or None,
    )


def api_key_env_var(provider: str) -> str | None:
    return _API_KEY_ENV_VARS.get(provider)
