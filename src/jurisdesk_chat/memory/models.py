from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, Literal

from loguru import logger

Provider = Literal["ollama", "claude", "openai", "gemini"]
Role = Literal["user", "assistant"]

PROVIDERS: tuple[str, ...] = ("ollama", "claude", "openai", "gemini")


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: str | datetime | None) -> datetime:
    """SQLite ``CURRENT_TIMESTAMP`` values are UTC without an offset."""
    if value is None:
        return utc_now()
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class WebSearchResult:
    title: str
    url: str
    snippet: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "url": self.url, "snippet": self.snippet}


def parse_web_search_results(raw: str | None) -> list[WebSearchResult] | None:
    if not raw:
        return None
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError) as ex:
        logger.warning(f"Ignoring malformed web search results: {ex}")
        return None
    if not isinstance(decoded, list):
        return None

    results: list[WebSearchResult] = []
    for item in decoded:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        url = item.get("url")
        if not isinstance(title, str) or not isinstance(url, str):
            continue
        snippet = item.get("snippet")
        results.append(WebSearchResult(title=title, url=url, snippet=snippet if isinstance(snippet, str) else ""))
    return results or None


def serialize_web_search_results(results: list[WebSearchResult] | None) -> str | None:
    if not results:
        return None
    return json.dumps([r.to_dict() for r in results], ensure_ascii=False)


@dataclass(frozen=True)
class ChatSession:
    id: int
    provider: str
    model: str | None
    title: str | None = None
    case_id: int | None = None
    created_at: str = ""

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ChatSession:
        return cls(
            id=int(row["id"]),
            provider=str(row["provider"]),
            model=row.get("model"),
            title=row.get("title"),
            case_id=row.get("case_id"),
            created_at=str(row.get("created_at") or ""),
        )

    def with_provider_model(self, provider: str, model: str | None) -> ChatSession:
        return replace(self, provider=provider, model=model)


@dataclass(frozen=True)
class ChatMessage:
    id: int
    role: str
    content: str
    timestamp: datetime
    session_id: int | None = None
    usage: Any = None
    thinking_content: str | None = None
    reasoning_content: str | None = None
    web_search_results: list[WebSearchResult] | None = None
    cost_usd: float | None = None
    intent_profile: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ChatMessage:
        cost = row.get("cost_usd")
        return cls(
            id=int(row["id"]),
            session_id=row.get("session_id"),
            role=str(row["role"]),
            content=str(row["content"]),
            timestamp=parse_timestamp(row.get("created_at")),
            thinking_content=row.get("thinking_content"),
            web_search_results=parse_web_search_results(row.get("web_search_results")),
            cost_usd=float(cost) if cost is not None else None,
            intent_profile=row.get("intent_profile"),
        )
