from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from pathlib import Path

from jurisdesk_chat import cost_tracker
from jurisdesk_chat.app_config import AppConfig, RuntimeEnv
from jurisdesk_chat.assistant import Assistant
from jurisdesk_chat.backup import BackupScheduler
from jurisdesk_chat.chat_controller import ChatController
from jurisdesk_chat.logging_config import setup_logging
from jurisdesk_chat.memory import (
    ActivityLogger,
    AsyncEventSink,
    LocalStore,
    MessageWindow,
    SessionManager,
    prune_usage_logs,
)
from jurisdesk_chat.provider import AIGateway, ProviderGateway
from jurisdesk_chat.search_controller import SearchController, search_chats


@dataclass
class AppRuntime:
    assistant: Assistant
    store: LocalStore
    event_sink: AsyncEventSink
    backup: BackupScheduler
    db_path: str
    log_descriptions: list[str]

    async def close(self) -> None:
        await self.backup.close(flush=True)
        await self.event_sink.close()
        self.store.close()


def _resolve_path(value: str) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


async def bootstrap_runtime(
    app: AppConfig,
    env: RuntimeEnv,
    *,
    gateway: AIGateway | None = None,
    configure_logging: bool = True,
) -> AppRuntime:
    log_descriptions: list[str] = []
    if configure_logging:
        log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    db_path = app.db_path if app.db_path == ":memory:" else str(_resolve_path(app.db_path))
    store = LocalStore(db_path)
    prune_usage_logs(store, retention_days=app.usage_retention_days)

    event_sink = AsyncEventSink(store)
    await event_sink.start()
    activity = ActivityLogger(store, sink=event_sink)

    backup = BackupScheduler(
        store,
        _resolve_path(app.backup_path),
        enabled=app.backup_enabled and db_path != ":memory:",
        max_backups=app.max_backups,
        debounce_seconds=app.backup_debounce_seconds,
        min_interval_seconds=app.backup_min_interval_seconds,
    )

    sessions = SessionManager(store)
    controller = ChatController(
        sessions,
        gateway or ProviderGateway(),
        window=MessageWindow(sessions, page_size=app.page_size, window_size=app.window_size),
        context_limit=app.context_limit,
        on_activity=activity.log_activity,
        on_backup=backup.trigger,
        on_usage=partial(cost_tracker.log_usage, store),
    )
    search = SearchController(partial(search_chats, store))

    assistant = Assistant(
        controller=controller,
        search=search,
        sessions=sessions,
        store=store,
        app=app,
        env=env,
    )
    try:
        await assistant.initialize_session()
    except Exception:
        await backup.close()
        await event_sink.close()
        store.close()
        raise

    return AppRuntime(
        assistant=assistant,
        store=store,
        event_sink=event_sink,
        backup=backup,
        db_path=db_path,
        log_descriptions=log_descriptions,
    )
