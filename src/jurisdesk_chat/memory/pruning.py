from __future__ import annotations

from datetime import UTC, datetime, timedelta

from loguru import logger

from jurisdesk_chat.memory.store import LocalStore


def prune_usage_logs(store: LocalStore, *, retention_days: int) -> int:
    """Delete ``ai_usage_logs`` rows older than ``retention_days``; returns rows removed."""
    if retention_days <= 0:
        return 0
    cutoff = (datetime.now(UTC) - timedelta(days=retention_days)).strftime("%Y-%m-%d %H:%M:%S")
    with store.transaction():
        cursor = store.execute("DELETE FROM ai_usage_logs WHERE created_at < ?", (cutoff,))
    removed = cursor.rowcount
    if removed:
        logger.info(f"Pruned {removed} usage log rows older than {retention_days} days")
    return removed
