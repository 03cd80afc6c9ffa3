from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from jurisdesk_chat.memory.store import LocalStore

BACKUP_PREFIX = "jurisdesk_auto_"
BACKUP_SUFFIX = ".db"


def backup_filename(now: datetime | None = None) -> str:
    moment = now or datetime.now(UTC)
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond // 1000:03d}Z"
    return f"{BACKUP_PREFIX}{stamp}{BACKUP_SUFFIX}"


class BackupScheduler:
    """Debounced automatic backups of the chat database.

    Bursts of ``trigger()`` calls collapse into one backup after
    ``debounce_seconds`` of quiet, and two backups never start closer than
    ``min_interval_seconds`` apart. Triggers that arrive while a backup is
    running schedule another one afterwards.
    """

    def __init__(
        self,
        store: LocalStore,
        backup_dir: str | Path,
        *,
        enabled: bool = True,
        max_backups: int = 10,
        debounce_seconds: float = 5.0,
        min_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._backup_dir = Path(backup_dir)
        self._enabled = enabled
        self._max_backups = max(1, max_backups)
        self._debounce_seconds = max(0.0, debounce_seconds)
        self._min_interval_seconds = max(0.0, min_interval_seconds)
        self._clock = clock
        self._waiter: asyncio.Task | None = None
        self._pending = False
        self._in_progress = False
        self._last_started: float | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    @property
    def is_pending(self) -> bool:
        return self._pending

    def trigger(self) -> None:
        if not self._enabled:
            return
        self._pending = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Backup trigger ignored: no running event loop")
            return
        self._schedule(loop, self._debounce_seconds)

    async def close(self, *, flush: bool = False) -> None:
        """Cancel the scheduled run; with ``flush`` a pending backup is written first."""
        waiter, self._waiter = self._waiter, None
        if waiter is not None and not waiter.done():
            waiter.cancel()
            try:
                await waiter
            except asyncio.CancelledError:
                pass
        if flush and self._pending and self._enabled:
            self._pending = False
            await self.execute_backup()

    async def execute_backup(self) -> Path | None:
        """Back up now; returns the file written, or ``None`` when skipped or failed."""
        if self._in_progress:
            return None
        self._in_progress = True
        self._last_started = self._clock()
        try:
            self._backup_dir.mkdir(parents=True, exist_ok=True)
            target = self._unique_target(backup_filename())
            await asyncio.to_thread(self._store.backup_to, target)
            self._rotate()
            logger.info(f"Backup written: {target}")
            return target
        except Exception as ex:
            logger.error(f"Automatic backup failed: {ex}")
            return None
        finally:
            self._in_progress = False

    def list_backups(self) -> list[Path]:
        if not self._backup_dir.exists():
            return []
        return sorted(
            self._backup_dir.glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}"),
            key=lambda p: (p.stat().st_mtime_ns, p.name),
        )

    def _schedule(self, loop: asyncio.AbstractEventLoop, delay: float) -> None:
        if self._waiter is not None and not self._waiter.done():
            self._waiter.cancel()
        self._waiter = loop.create_task(self._wait_and_run(delay))

    async def _wait_and_run(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._waiter = None
        await self._run_when_ready()

    async def _run_when_ready(self) -> None:
        if not self._pending:
            return
        loop = asyncio.get_running_loop()
        if self._in_progress:
            self._schedule(loop, self._debounce_seconds)
            return

        if self._last_started is not None:
            remaining = self._min_interval_seconds - (self._clock() - self._last_started)
            if remaining > 0:
                self._schedule(loop, remaining)
                return

        self._pending = False
        await self.execute_backup()
        if self._pending:
            self._schedule(loop, self._debounce_seconds)

    def _unique_target(self, filename: str) -> Path:
        target = self._backup_dir / filename
        counter = 1
        while target.exists():
            target = self._backup_dir / f"{filename[: -len(BACKUP_SUFFIX)]}-{counter}{BACKUP_SUFFIX}"
            counter += 1
        return target

    def _rotate(self) -> None:
        backups = self.list_backups()
        for stale in backups[: max(0, len(backups) - self._max_backups)]:
            stale.unlink(missing_ok=True)
            logger.debug(f"Removed old backup: {stale}")
