import asyncio
import tempfile
import unittest
from pathlib import Path

from watchfiles import Change

from ccboard.models import WatchConfig
from ccboard.watcher import ChangeWatcher


class ChangeWatcherTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name).resolve()
        self.tasks_path = self.root / "TASKS.md"
        self.hooks_dir = self.root / "hooks"
        self.hooks_dir.mkdir()
        self.tasks_path.write_text("## Phase 1\n- [ ] A: a\n", encoding="utf-8")
        self.queue: asyncio.Queue = asyncio.Queue()
        self.watcher = ChangeWatcher(
            WatchConfig(tasks_path=self.tasks_path, hooks_dir=self.hooks_dir, debounce_ms=20),
            self.queue,
        )

    async def asyncTearDown(self) -> None:
        await self.watcher.stop()

    def test_burst_collapses_to_one_notification_per_source(self) -> None:
        log = str(self.hooks_dir / "events.jsonl")
        changes = {
            (Change.modified, log),
            (Change.added, str(self.hooks_dir / "other.jsonl")),
            (Change.modified, str(self.tasks_path)),
            (Change.deleted, str(self.tasks_path)),
            (Change.added, str(self.tasks_path)),
        }
        self.assertEqual(self.watcher.classify_changes(changes), ["tasks", "hooks"])

    def test_unrelated_files_are_ignored(self) -> None:
        changes = {
            (Change.modified, str(self.root / "NOTES.md")),
            (Change.modified, str(self.hooks_dir / "events.jsonl.swp")),
            (Change.added, str(self.root / "elsewhere" / "x.jsonl")),
        }
        self.assertEqual(self.watcher.classify_changes(changes), [])

    def test_single_source_batch(self) -> None:
        changes = {(Change.modified, str(self.hooks_dir / "events.jsonl"))}
        self.assertEqual(self.watcher.classify_changes(changes), ["hooks"])

    def test_watch_paths_cover_document_directory(self) -> None:
        self.assertEqual(set(self.watcher.watch_paths()), {self.root, self.hooks_dir})

    async def test_start_fails_for_missing_hook_dir(self) -> None:
        watcher = ChangeWatcher(
            WatchConfig(tasks_path=self.tasks_path, hooks_dir=self.root / "absent"),
            self.queue,
        )
        self.assertFalse(watcher.start())
        self.assertFalse(watcher.is_running)

    async def test_start_fails_for_missing_document_directory(self) -> None:
        watcher = ChangeWatcher(
            WatchConfig(tasks_path=self.root / "absent" / "TASKS.md", hooks_dir=self.hooks_dir),
            self.queue,
        )
        self.assertFalse(watcher.start())

    async def test_start_and_stop(self) -> None:
        self.assertTrue(self.watcher.start())
        self.assertTrue(self.watcher.is_running)
        self.assertTrue(self.watcher.start())
        await self.watcher.stop()
        self.assertFalse(self.watcher.is_running)

    async def test_live_change_posts_notification(self) -> None:
        self.assertTrue(self.watcher.start())
        await asyncio.sleep(0.3)
        (self.hooks_dir / "events.jsonl").write_text("{}\n", encoding="utf-8")
        notification = await asyncio.wait_for(self.queue.get(), timeout=10)
        self.assertEqual(notification.source, "hooks")


if __name__ == "__main__":
    unittest.main()
