from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from jurisdesk_chat.memory.store import LocalStore

DEFAULT_EXCHANGE_RATE = 6.0
_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class ClaudeUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    thinking_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0


@dataclass(frozen=True)
class GPT5Usage:
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    cached_tokens: int = 0


@dataclass(frozen=True)
class GeminiUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    thinking_tokens: int = 0
    cached_tokens: int = 0


UsageRecord = ClaudeUsage | GPT5Usage | GeminiUsage


@dataclass(frozen=True)
class ClaudePricing:
    input: float = 3.00
    output: float = 15.00
    thinking: float = 15.00
    cache_write: float = 3.75
    cache_read: float = 0.30


@dataclass(frozen=True)
class GPT5Pricing:
    input: float = 0.25
    output: float = 2.00
    cache: float = 0.025


@dataclass(frozen=True)
class GeminiPricing:
    input: float = 0.50
    output: float = 3.00


CLAUDE_PRICING = ClaudePricing()
GPT5_PRICING = GPT5Pricing()
GEMINI_PRICING = GeminiPricing()


@dataclass(frozen=True)
class CostSummary:
    total_cost_usd: float
    total_input_tokens: int
    total_output_tokens: int
    total_thinking_tokens: int
    total_cache_read_tokens: int
    total_cache_write_tokens: int
    request_count: int


def calculate_cost(usage: ClaudeUsage, pricing: ClaudePricing = CLAUDE_PRICING) -> float:
    return (
        usage.input_tokens / _PER_MILLION * pricing.input
        + usage.output_tokens / _PER_MILLION * pricing.output
        + usage.thinking_tokens / _PER_MILLION * pricing.thinking
        + usage.cache_creation_input_tokens / _PER_MILLION * pricing.cache_write
        + usage.cache_read_input_tokens / _PER_MILLION * pricing.cache_read
    )


def calculate_cost_gpt5(usage: GPT5Usage, pricing: GPT5Pricing = GPT5_PRICING) -> float:
    cached = usage.cached_tokens
    uncached_input = usage.input_tokens - cached
    return (
        uncached_input / _PER_MILLION * pricing.input
        + cached / _PER_MILLION * pricing.cache
        + (usage.output_tokens + usage.reasoning_tokens) / _PER_MILLION * pricing.output
    )


def calculate_cost_gemini(usage: GeminiUsage, pricing: GeminiPricing = GEMINI_PRICING) -> float:
    # Cached input tokens are not billed.
    return (
        usage.input_tokens / _PER_MILLION * pricing.input
        + (usage.output_tokens + usage.thinking_tokens) / _PER_MILLION * pricing.output
    )


def calculate_usage_cost(usage: UsageRecord) -> float:
    if isinstance(usage, ClaudeUsage):
        return calculate_cost(usage)
    if isinstance(usage, GPT5Usage):
        return calculate_cost_gpt5(usage)
    if isinstance(usage, GeminiUsage):
        return calculate_cost_gemini(usage)
    raise TypeError(f"Unsupported usage record: {type(usage).__name__}")


def format_cost(cost_usd: float) -> str:
    if cost_usd < 0.0001:
        return "< $0.0001"
    if cost_usd < 0.01:
        return f"${cost_usd:.4f}"
    if cost_usd < 1:
        return f"${cost_usd:.3f}"
    return f"${cost_usd:.2f}"


def format_cost_brl(cost_usd: float, exchange_rate: float = DEFAULT_EXCHANGE_RATE) -> str:
    cost_brl = cost_usd * exchange_rate
    if cost_brl < 0.01:
        return "< R$ 0,01"
    return f"R$ {cost_brl:.2f}".replace(".", ",")


def _ledger_columns(usage: UsageRecord) -> tuple[int, int, int, int, int]:
    """(input, output, thinking, cache_read, cache_write) for any usage variant."""
    if isinstance(usage, ClaudeUsage):
        return (
            usage.input_tokens,
            usage.output_tokens,
            usage.thinking_tokens,
            usage.cache_read_input_tokens,
            usage.cache_creation_input_tokens,
        )
    if isinstance(usage, GPT5Usage):
        return (usage.input_tokens, usage.output_tokens, usage.reasoning_tokens, usage.cached_tokens, 0)
    if isinstance(usage, GeminiUsage):
        return (usage.input_tokens, usage.output_tokens, usage.thinking_tokens, usage.cached_tokens, 0)
    raise TypeError(f"Unsupported usage record: {type(usage).__name__}")


async def log_usage(store: LocalStore, session_id: int | None, usage: UsageRecord) -> int:
    cost = calculate_usage_cost(usage)
    input_tokens, output_tokens, thinking_tokens, cache_read, cache_write = _ledger_columns(usage)
    row_id = await store.insert(
        """
        INSERT INTO ai_usage_logs
            (session_id, input_tokens, output_tokens, thinking_tokens,
             cache_read_tokens, cache_write_tokens, cost_usd)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (session_id, input_tokens, output_tokens, thinking_tokens, cache_read, cache_write, cost),
    )
    logger.debug(f"Usage logged: session={session_id}, cost={format_cost(cost)}")
    return row_id


def _day_bounds(now: datetime) -> tuple[str, str]:
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return _sql_time(start), _sql_time(start + timedelta(days=1))


def _month_bounds(now: datetime) -> tuple[str, str]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return _sql_time(start), _sql_time(end)


def _sql_time(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def _utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


async def _cost_between(store: LocalStore, start: str, end: str) -> float:
    rows = await store.select(
        "SELECT COALESCE(SUM(cost_usd), 0) AS total FROM ai_usage_logs WHERE created_at >= ? AND created_at < ?",
        (start, end),
    )
    return float(rows[0]["total"]) if rows else 0.0


async def _summary_between(store: LocalStore, start: str, end: str) -> CostSummary:
    rows = await store.select(
        """
        SELECT
            COALESCE(SUM(cost_usd), 0) AS total_cost,
            COALESCE(SUM(input_tokens), 0) AS total_input,
            COALESCE(SUM(output_tokens), 0) AS total_output,
            COALESCE(SUM(thinking_tokens), 0) AS total_thinking,
            COALESCE(SUM(cache_read_tokens), 0) AS total_cache_read,
            COALESCE(SUM(cache_write_tokens), 0) AS total_cache_write,
            COUNT(*) AS request_count
        FROM ai_usage_logs
        WHERE created_at >= ? AND created_at < ?
        """,
        (start, end),
    )
    row = rows[0] if rows else {}
    return CostSummary(
        total_cost_usd=float(row.get("total_cost") or 0),
        total_input_tokens=int(row.get("total_input") or 0),
        total_output_tokens=int(row.get("total_output") or 0),
        total_thinking_tokens=int(row.get("total_thinking") or 0),
        total_cache_read_tokens=int(row.get("total_cache_read") or 0),
        total_cache_write_tokens=int(row.get("total_cache_write") or 0),
        request_count=int(row.get("request_count") or 0),
    )


async def get_daily_cost(store: LocalStore, *, now: datetime | None = None) -> float:
    return await _cost_between(store, *_day_bounds(now or _utc_now()))


async def get_monthly_cost(store: LocalStore, *, now: datetime | None = None) -> float:
    return await _cost_between(store, *_month_bounds(now or _utc_now()))


async def get_daily_summary(store: LocalStore, *, now: datetime | None = None) -> CostSummary:
    return await _summary_between(store, *_day_bounds(now or _utc_now()))


async def get_monthly_summary(store: LocalStore, *, now: datetime | None = None) -> CostSummary:
    return await _summary_between(store, *_month_bounds(now or _utc_now()))


async def get_session_cost(store: LocalStore, session_id: int) -> float:
    rows = await store.select(
        "SELECT COALESCE(SUM(cost_usd), 0) AS total FROM ai_usage_logs WHERE session_id = ?",
        (session_id,),
    )
    return float(rows[0]["total"]) if rows else 0.0


async def is_daily_limit_reached(store: LocalStore, limit_usd: float | None) -> bool:
    if not limit_usd or limit_usd <= 0:
        return False
    return await get_daily_cost(store) >= limit_usd


async def get_daily_limit_percentage(store: LocalStore, limit_usd: float | None) -> float:
    if not limit_usd or limit_usd <= 0:
        return 0.0
    return min(100.0, await get_daily_cost(store) / limit_usd * 100)
