"""Change watcher for TASKS.md and the hook event directory, using watchfiles.

Raw filesystem events are debounced by ``watchfiles`` and reduced to at most
one ChangeNotification per source per batch. Notifications go onto an
asyncio queue; the watcher never touches dashboard state.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import Change, awatch

from ccboard.models import ChangeNotification, ChangeSource, WatchConfig
from ccboard.parsers.hooks import HOOK_FILE_SUFFIX

logger = logging.getLogger("ccboard.watcher")


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


class ChangeWatcher:
    """Background watcher that posts "source changed" notifications."""

    def __init__(self, config: WatchConfig, queue: asyncio.Queue):
        self.config = config
        self.queue = queue
        self._tasks_path = config.tasks_path.expanduser().resolve(strict=False)
        self._hooks_dir = config.hooks_dir.expanduser().resolve(strict=False)
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def watch_paths(self) -> list[Path]:
        # The parent directory is watched so atomic save-and-rename is still seen
        return sorted({self._tasks_path.parent, self._hooks_dir})

    def start(self) -> bool:
        """Begin watching in a background task. Returns False if a path is unusable."""
        if self._running:
            logger.warning("Change watcher already running")
            return True

        if not self._tasks_path.parent.is_dir():
            logger.warning("Task document directory %s not found; live reload disabled", self._tasks_path.parent)
            return False
        if not self._hooks_dir.is_dir():
            logger.warning("Hook directory %s not found; live reload disabled", self._hooks_dir)
            return False

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(self._stop_event))
        logger.info("Change watcher started for %s", [str(p) for p in self.watch_paths()])
        return True

    async def stop(self) -> None:
        """Stop watching. Pending raw changes are dropped."""
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Change watcher stopped")

    async def _watch_loop(self, stop_event: asyncio.Event) -> None:
        try:
            async for changes in awatch(
                *self.watch_paths(),
                debounce=max(1, self.config.debounce_ms),
                step=min(50, max(1, self.config.debounce_ms)),
                stop_event=stop_event,
            ):
                for source in self.classify_changes(changes):
                    self.queue.put_nowait(ChangeNotification(source=source))
        except asyncio.CancelledError:
            logger.info("Change watcher task cancelled")
        except Exception as e:
            logger.error(f"Change watcher error: {e}")
        finally:
            self._running = False

    def classify_changes(self, changes: set[tuple[Change, str]]) -> list[ChangeSource]:
        """Reduce a raw change batch to the affected sources, tasks first."""
        sources: set[ChangeSource] = set()
        for _change_type, path_str in changes:
            path = Path(path_str).resolve(strict=False)
            if path == self._tasks_path:
                sources.add("tasks")
            elif path.suffix == HOOK_FILE_SUFFIX and _is_under(path, self._hooks_dir):
                sources.add("hooks")
        return [source for source in ("tasks", "hooks") if source in sources]
