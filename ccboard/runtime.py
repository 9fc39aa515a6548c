"""Single-owner main loop around DashboardState.

The loop is the only writer of the state. It drains the watcher's
notification queue without blocking, then waits for either a wake-up or the
tick interval. Without a watcher it falls back to periodic re-reads.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from ccboard import config
from ccboard.models import ChangeNotification, ChangeSource, WatchConfig
from ccboard.state.dashboard import DashboardState
from ccboard.watcher import ChangeWatcher

logger = logging.getLogger("ccboard.runtime")


class DashboardRuntime:
    def __init__(
        self,
        tasks_path: Path,
        hooks_dir: Path,
        *,
        debounce_ms: int = config.DEBOUNCE_MS,
        tick_ms: int = config.TICK_MS,
        poll_ticks: int = config.POLL_TICKS,
        max_errors: int = config.ERROR_HISTORY,
        max_parse_errors: int = config.PARSE_ERROR_HISTORY,
        watch: bool = config.WATCH_ENABLED,
    ):
        self.state = DashboardState(
            tasks_path,
            hooks_dir,
            max_errors=max_errors,
            max_parse_errors=max_parse_errors,
        )
        self.watch_config = WatchConfig(tasks_path=tasks_path, hooks_dir=hooks_dir, debounce_ms=debounce_ms)
        self.tick_seconds = max(1, tick_ms) / 1000
        self.poll_ticks = max(1, poll_ticks)
        self.watch_enabled = watch
        self.notifications: asyncio.Queue[ChangeNotification] = asyncio.Queue()
        self.watcher: Optional[ChangeWatcher] = None
        self._wake = asyncio.Event()
        self._running = False
        self._ticks = 0

    @property
    def degraded(self) -> bool:
        """True when live reload is unavailable and the loop polls instead."""
        return self.watcher is None or not self.watcher.is_running

    def bootstrap(self) -> None:
        """Initial parse of both sources. Missing inputs leave empty defaults."""
        if not self.state.load_tasks():
            logger.info("Starting with no task phases")
        if not self.state.load_hooks(replay=True):
            logger.info("Starting with no hook events")

    def start_watcher(self) -> bool:
        if not self.watch_enabled:
            logger.info("Live reload disabled by configuration")
            return False
        watcher = ChangeWatcher(self.watch_config, self.notifications)
        if not watcher.start():
            logger.warning("Change watcher unavailable; polling every %d ticks", self.poll_ticks)
            return False
        self.watcher = watcher
        return True

    def notify(self, source: ChangeSource) -> None:
        """Queue a reload from outside the watcher (manual refresh)."""
        self.notifications.put_nowait(ChangeNotification(source=source))
        self._wake.set()

    def drain(self) -> int:
        """Apply all queued notifications in arrival order without blocking."""
        applied = 0
        while True:
            try:
                notification = self.notifications.get_nowait()
            except asyncio.QueueEmpty:
                break
            if not self.state.apply_change(notification):
                logger.info("Skipped %s reload", notification.source)
            applied += 1
        return applied

    def tick(self) -> int:
        self._ticks += 1
        applied = self.drain()
        if self.degraded and self._ticks % self.poll_ticks == 0:
            self.state.load_tasks()
            self.state.load_hooks()
        return applied

    async def run(self) -> None:
        self._running = True
        logger.info("Dashboard loop running (tick=%.3fs, degraded=%s)", self.tick_seconds, self.degraded)
        try:
            while self._running:
                try:
                    self.tick()
                except Exception:
                    # The loop outlives a bad reload; the next change retries it
                    logger.exception("Dashboard tick failed; keeping previous state")
                self._wake.clear()
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=self.tick_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False

    async def stop(self) -> None:
        self._running = False
        self._wake.set()
        if self.watcher is not None:
            await self.watcher.stop()
            self.watcher = None
