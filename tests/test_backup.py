import asyncio
import re
import sqlite3
from datetime import UTC, datetime

from tests.memory.base import LocalStoreTestCase
from jurisdesk_chat.backup import BackupScheduler, backup_filename


class BackupSchedulerTests(LocalStoreTestCase):
    def _scheduler(self, **kwargs) -> BackupScheduler:
        kwargs.setdefault("debounce_seconds", 0.05)
        kwargs.setdefault("min_interval_seconds", 0)
        return BackupScheduler(self._store, self._tmp_dir / "backups", **kwargs)

    def test_filename_format(self) -> None:
        name = backup_filename(datetime(2025, 3, 1, 14, 5, 9, 42000, tzinfo=UTC))
        self.assertEqual("jurisdesk_auto_2025-03-01T14-05-09-042Z.db", name)
        self.assertRegex(backup_filename(), r"^jurisdesk_auto_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z\.db$")

    def test_burst_of_triggers_writes_one_backup(self) -> None:
        scheduler = self._scheduler()

        async def run() -> None:
            for _ in range(5):
                scheduler.trigger()
                await asyncio.sleep(0.01)
            await asyncio.sleep(0.3)
            await scheduler.close()

        asyncio.run(run())

        self.assertEqual(1, len(scheduler.list_backups()))
        self.assertFalse(scheduler.is_pending)

    def test_backup_is_a_readable_database(self) -> None:
        sid = asyncio.run(self._sessions.create_session("ollama", "llama3.1", title="Caso Souza"))
        scheduler = self._scheduler()

        target = asyncio.run(scheduler.execute_backup())

        self.assertIsNotNone(target)
        conn = sqlite3.connect(str(target))
        try:
            row = conn.execute("SELECT title FROM chat_sessions WHERE id = ?", (sid,)).fetchone()
        finally:
            conn.close()
        self.assertEqual("Caso Souza", row[0])

    def test_disabled_scheduler_does_nothing(self) -> None:
        scheduler = self._scheduler(enabled=False)

        async def run() -> None:
            scheduler.trigger()
            await asyncio.sleep(0.1)
            await scheduler.close(flush=True)

        asyncio.run(run())

        self.assertFalse(scheduler.is_pending)
        self.assertEqual([], scheduler.list_backups())

    def test_rotation_keeps_newest(self) -> None:
        scheduler = self._scheduler(max_backups=2)

        async def run():
            written = []
            for _ in range(4):
                written.append(await scheduler.execute_backup())
                await asyncio.sleep(0.01)
            return written

        written = asyncio.run(run())

        remaining = scheduler.list_backups()
        self.assertEqual(2, len(remaining))
        self.assertIn(written[-1], remaining)
        self.assertTrue(all(re.match(r"^jurisdesk_auto_", p.name) for p in remaining))

    def test_min_interval_defers_next_backup(self) -> None:
        now = [100.0]
        scheduler = self._scheduler(min_interval_seconds=60, clock=lambda: now[0])

        async def run() -> None:
            await scheduler.execute_backup()
            scheduler.trigger()
            await asyncio.sleep(0.2)
            await scheduler.close()

        asyncio.run(run())

        self.assertEqual(1, len(scheduler.list_backups()))
        self.assertTrue(scheduler.is_pending)

    def test_close_with_flush_writes_pending_backup(self) -> None:
        scheduler = self._scheduler(debounce_seconds=30)

        async def run() -> None:
            scheduler.trigger()
            await scheduler.close(flush=True)

        asyncio.run(run())

        self.assertEqual(1, len(scheduler.list_backups()))
        self.assertFalse(scheduler.is_pending)

    def test_trigger_without_event_loop_stays_pending(self) -> None:
        scheduler = self._scheduler()
        scheduler.trigger()
        self.assertTrue(scheduler.is_pending)
        self.assertEqual([], scheduler.list_backups())

    def test_failed_backup_returns_none(self) -> None:
        blocker = self._tmp_dir / "not-a-dir"
        blocker.write_text("x", encoding="utf-8")
        scheduler = BackupScheduler(self._store, blocker / "backups")

        self.assertIsNone(asyncio.run(scheduler.execute_backup()))
