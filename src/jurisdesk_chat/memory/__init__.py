from jurisdesk_chat.memory.activity import ActivityLogger
from jurisdesk_chat.memory.event_sink import AsyncEventSink
from jurisdesk_chat.memory.models import ChatMessage, ChatSession, WebSearchResult
from jurisdesk_chat.memory.pruning import prune_usage_logs
from jurisdesk_chat.memory.session_manager import SessionManager
from jurisdesk_chat.memory.store import LocalStore
from jurisdesk_chat.memory.window import MessageWindow, PaginationState

__all__ = [
    "ActivityLogger",
    "AsyncEventSink",
    "ChatMessage",
    "ChatSession",
    "LocalStore",
    "MessageWindow",
    "PaginationState",
    "SessionManager",
    "WebSearchResult",
    "prune_usage_logs",
]
