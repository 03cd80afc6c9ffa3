from __future__ import annotations

from jurisdesk_chat.cost_tracker import CostSummary, format_cost, format_cost_brl
from jurisdesk_chat.intent_classifier import get_profile_description
from jurisdesk_chat.memory.models import ChatMessage, ChatSession
from jurisdesk_chat.search_controller import SearchResult


class SessionPresenter:
    """Plain-text rendering of sessions, messages and costs for the terminal."""

    def __init__(self, *, line_prefix: str, exchange_rate: float = 6.0):
        self._line_prefix = line_prefix
        self._exchange_rate = exchange_rate

    def format_session_list_entry(self, session: ChatSession, *, active_session_id: int | None) -> str:
        marker = "*" if session.id == active_session_id else " "
        title = session.title or f"#{session.id}"
        case = session.case_id if session.case_id is not None else "-"
        return (
            f"{self._line_prefix}{marker} {title} (id={session.id}) "
            f"(provider={session.provider}, model={session.model or '-'}, "
            f"created={session.created_at}, case={case})"
        )

    def format_session_header(self, session: ChatSession, message_count: int) -> str:
        return (
            f"{self._line_prefix}Session: {session.title or f'#{session.id}'} (id={session.id}, "
            f"{session.provider}/{session.model or '-'}, {message_count} messages loaded)"
        )

    def format_summary_lines(self, summary: dict) -> list[str]:
        lines = [f"{self._line_prefix}Session summary:"]
        lines.append(f"{self._line_prefix}- Created: {summary['created_at']}")
        lines.append(
            f"{self._line_prefix}- Messages: {summary['message_count']} "
            f"(user={summary['user_message_count']}, assistant={summary['assistant_message_count']})"
        )
        lines.append(f"{self._line_prefix}- Cost: {self.format_cost_pair(summary['total_cost_usd'])}")
        last = summary.get("last_message_preview", "")
        if last:
            lines.append(f"{self._line_prefix}- Last message: {last}")
        return lines

    def format_message_lines(self, message: ChatMessage) -> list[str]:
        if message.role == "user":
            return [f"you> {message.content}"]
        lines = [f"{self._line_prefix}{message.content}"]
        footer = self.format_message_footer(message)
        if footer:
            lines.append(footer)
        return lines

    def format_message_footer(self, message: ChatMessage) -> str:
        parts: list[str] = []
        if message.intent_profile:
            parts.append(get_profile_description(message.intent_profile))
        if message.cost_usd is not None:
            parts.append(self.format_cost_pair(message.cost_usd))
        if message.web_search_results:
            parts.append(f"{len(message.web_search_results)} fontes")
        if not parts:
            return ""
        return f"{self._line_prefix}[{' | '.join(parts)}]"

    def format_sources(self, message: ChatMessage) -> list[str]:
        return [f"{self._line_prefix}  - {r.title}: {r.url}" for r in message.web_search_results or []]

    def format_cost_pair(self, cost_usd: float) -> str:
        return f"{format_cost(cost_usd)} / {format_cost_brl(cost_usd, self._exchange_rate)}"

    def format_cost_summary_lines(self, label: str, summary: CostSummary) -> list[str]:
        return [
            f"{self._line_prefix}{label}: {self.format_cost_pair(summary.total_cost_usd)} "
            f"({summary.request_count} requests)",
            f"{self._line_prefix}  tokens: input={summary.total_input_tokens:,}, "
            f"output={summary.total_output_tokens:,}, thinking={summary.total_thinking_tokens:,}, "
            f"cache_read={summary.total_cache_read_tokens:,}, cache_write={summary.total_cache_write_tokens:,}",
        ]

    def format_search_result(self, index: int, result: SearchResult, *, selected: bool) -> str:
        marker = ">" if selected else " "
        where = "title" if result.kind == "session" else f"message {result.message_id}"
        return f"{self._line_prefix}{marker} {index + 1}. {result.title} (session={result.session_id}, {where}): {result.snippet}"
