from __future__ import annotations


class ChatError(Exception):
    """Base class for errors raised by the chat engine."""


class SessionNotFoundError(ChatError, LookupError):
    def __init__(self, session_id: int | None = None):
        self.session_id = session_id
        super().__init__("Session not found")


class UnknownProviderError(ChatError, ValueError):
    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unknown provider: {provider!r}. Supported: 'ollama', 'claude', 'openai', 'gemini'")


class MissingApiKeyError(ChatError, ValueError):
    _LABELS = {
        "claude": "Claude",
        "openai": "OpenAI",
        "gemini": "Google AI",
    }

    def __init__(self, provider: str):
        self.provider = provider
        label = self._LABELS.get(provider, provider)
        super().__init__(f"{label} API key is required")


class ProviderResponseError(ChatError):
    """The provider answered with a non-success status."""


class ProviderRateLimitError(ProviderResponseError):
    """HTTP 429 from a provider; retried by the adapter."""


def get_error_message(error: object) -> str:
    """Human-readable message for anything that ended up in an ``except`` block."""
    if isinstance(error, BaseException):
        text = str(error)
        if text:
            return text
        return type(error).__name__
    if isinstance(error, str):
        return error
    message = getattr(error, "message", None)
    if message is not None:
        return str(message)
    return "An unknown error occurred"
