"""Canonical dashboard state: task phases, agent lifecycle and selection.

One owner mutates this object (the runtime loop). The watcher only signals
which source changed; this class re-reads that source itself.
"""
from __future__ import annotations

import logging
import time
from collections import Counter, deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from ccboard.models import (
    AgentState,
    ChangeNotification,
    DashboardSnapshot,
    ErrorRecord,
    HookEvent,
    HookParseError,
    HookParseResult,
    Phase,
    SelectedTask,
    SelectionItem,
    TaskDocument,
    TaskStatus,
)
from ccboard.observability import record_hook_events, record_parser_failure, record_reload, start_span
from ccboard.parsers.hooks import HookLogTail
from ccboard.parsers.tasks import DocumentFormatError, parse_tasks_document, parse_tasks_file
from ccboard.state.aggregator import DEFAULT_ERROR_CAPACITY, AgentStateAggregator

logger = logging.getLogger("ccboard.state")

DEFAULT_PARSE_ERROR_CAPACITY = 20


class DashboardState:
    def __init__(
        self,
        tasks_path: Optional[Path] = None,
        hooks_dir: Optional[Path] = None,
        *,
        max_errors: int = DEFAULT_ERROR_CAPACITY,
        max_parse_errors: int = DEFAULT_PARSE_ERROR_CAPACITY,
    ):
        self.tasks_path = tasks_path
        self.hooks_dir = hooks_dir
        self.title = ""
        self.phases: list[Phase] = []
        self.agents: dict[str, AgentState] = {}
        self.aggregator = AgentStateAggregator(max_errors)
        self.recent_errors: deque[ErrorRecord] = self.aggregator.new_history()
        self.parse_errors: deque[HookParseError] = deque(maxlen=max(1, max_parse_errors))
        self.tasks_loaded_at: Optional[datetime] = None
        self.hooks_loaded_at: Optional[datetime] = None
        self._tail = HookLogTail(hooks_dir) if hooks_dir is not None else None
        self._flat: list[SelectionItem] = []

    @classmethod
    def from_tasks_text(cls, text: str, **kwargs) -> DashboardState:
        """Build a state from TASKS.md text. Raises DocumentFormatError."""
        state = cls(**kwargs)
        state._set_document(parse_tasks_document(text))
        return state

    # ── Derived counters ───────────────────────────────────────────

    def _count(self, status: TaskStatus) -> int:
        return sum(1 for phase in self.phases for task in phase.tasks if task.status == status)

    @property
    def total_tasks(self) -> int:
        return sum(len(phase.tasks) for phase in self.phases)

    @property
    def completed_tasks(self) -> int:
        return self._count("completed")

    @property
    def failed_tasks(self) -> int:
        return self._count("failed")

    @property
    def overall_progress(self) -> float:
        total = self.total_tasks
        if total == 0:
            return 0.0
        return self.completed_tasks / total

    # ── Task document ──────────────────────────────────────────────

    def _set_document(self, document) -> None:
        self.title = document.title
        self.phases = document.phases
        self.tasks_loaded_at = datetime.now(timezone.utc)
        self._flat = self._build_flat_index()

    def _accept_document(self, document: TaskDocument) -> bool:
        self._set_document(document)
        logger.info(
            "Loaded %d phases / %d tasks (%.0f%% complete)",
            len(self.phases), self.total_tasks, self.overall_progress * 100,
        )
        return True

    def _reject_document(self, exc: DocumentFormatError) -> bool:
        logger.warning("Task document not parsed, keeping previous state: %s", exc)
        record_parser_failure("tasks")
        return False

    def rebuild_from_tasks(self, text: str) -> bool:
        """Replace phases from TASKS.md text; keep the previous phases on failure."""
        try:
            document = parse_tasks_document(text)
        except DocumentFormatError as exc:
            return self._reject_document(exc)
        return self._accept_document(document)

    def load_tasks(self) -> bool:
        if self.tasks_path is None:
            return False
        try:
            document = parse_tasks_file(self.tasks_path)
        except OSError as exc:
            logger.warning("Cannot read task document %s: %s", self.tasks_path, exc)
            return False
        except DocumentFormatError as exc:
            return self._reject_document(exc)
        return self._accept_document(document)

    # ── Hook events ────────────────────────────────────────────────

    def ingest_events(self, events: Iterable[HookEvent]) -> int:
        """Fold events into agent state. Phases are never touched."""
        events = list(events)
        applied = self.aggregator.apply(self.agents, self.recent_errors, events)
        if applied:
            self.hooks_loaded_at = datetime.now(timezone.utc)
            for kind, count in Counter(event.event_type for event in events).items():
                record_hook_events(kind, count)
        return applied

    def replay_events(self, events: Iterable[HookEvent]) -> int:
        """Discard folded agent state and rebuild it from a full event sequence."""
        self.agents.clear()
        self.recent_errors.clear()
        return self.ingest_events(events)

    def _record_parse_errors(self, result: HookParseResult) -> None:
        if not result.errors:
            return
        self.parse_errors.extend(result.errors)
        record_parser_failure("hooks", len(result.errors))
        logger.warning(
            "Skipped %d malformed hook line(s); first at %s:%d",
            len(result.errors), result.errors[0].source or "<log>", result.errors[0].line_number,
        )

    def load_hooks(self, *, replay: bool = False) -> bool:
        """Read the hook directory; only new lines unless ``replay`` is set."""
        if self._tail is None:
            return False
        try:
            if replay:
                result = self._tail.read_all()
                full = True
            else:
                tail = self._tail.read_new()
                result, full = tail.result, tail.replay
        except OSError as exc:
            logger.warning("Cannot read hook directory %s: %s", self.hooks_dir, exc)
            return False

        if full:
            self.parse_errors.clear()
            self.replay_events(result.events)
        else:
            self.ingest_events(result.events)
        self._record_parse_errors(result)
        return True

    # ── Change notifications ───────────────────────────────────────

    def apply_change(self, notification: ChangeNotification) -> bool:
        """Re-read the source named by a notification. I/O failures are a no-op."""
        started = time.perf_counter()
        with start_span("ccboard.apply_change", {"source": notification.source}):
            if notification.source == "tasks":
                ok = self.load_tasks()
            else:
                ok = self.load_hooks()
        record_reload(notification.source, "ok" if ok else "skipped", (time.perf_counter() - started) * 1000)
        return ok

    # ── Selection ──────────────────────────────────────────────────

    def _build_flat_index(self) -> list[SelectionItem]:
        items: list[SelectionItem] = []
        for pi, phase in enumerate(self.phases):
            items.append(SelectionItem(
                index=len(items),
                kind="phase",
                phase_index=pi,
                phase_id=phase.id,
                label=phase.name,
            ))
            for ti, task in enumerate(phase.tasks):
                items.append(SelectionItem(
                    index=len(items),
                    kind="task",
                    phase_index=pi,
                    task_index=ti,
                    phase_id=phase.id,
                    task_id=task.id,
                    label=task.name,
                ))
        return items

    def flatten_for_selection(self) -> list[SelectionItem]:
        """Phase headers each followed by their tasks, in document order."""
        return list(self._flat)

    @property
    def total_items(self) -> int:
        return len(self._flat)

    def resolve_selection(self, index: int) -> Optional[tuple[int, int]]:
        """Map a flat index to (phase_index, task_index); None for headers or out of range."""
        if index < 0 or index >= len(self._flat):
            return None
        item = self._flat[index]
        if item.kind != "task" or item.task_index is None:
            return None
        return item.phase_index, item.task_index

    def selected_task(self, index: int) -> Optional[SelectedTask]:
        resolved = self.resolve_selection(index)
        if resolved is None:
            return None
        pi, ti = resolved
        phase = self.phases[pi]
        return SelectedTask(phase_index=pi, task_index=ti, phase_id=phase.id, task=phase.tasks[ti])

    def clamp_selection(self, index: int) -> int:
        if not self._flat:
            return 0
        return min(max(index, 0), len(self._flat) - 1)

    def move_selection(self, index: int, delta: int) -> int:
        """Move a cursor by ``delta`` rows, clamped to the flattened list."""
        return self.clamp_selection(self.clamp_selection(index) + delta)

    def locate_selection(self, phase_id: str, task_id: Optional[str] = None, fallback: int = 0) -> int:
        """Find the row for a phase/task after a reparse, else clamp ``fallback``."""
        for item in self._flat:
            if item.phase_id == phase_id and item.task_id == task_id:
                return item.index
        return self.clamp_selection(fallback)

    # ── Snapshot ───────────────────────────────────────────────────

    def snapshot(self) -> DashboardSnapshot:
        agents = sorted(self.agents.values(), key=lambda agent: agent.agent_id)
        return DashboardSnapshot(
            title=self.title,
            phases=[phase.model_copy(deep=True) for phase in self.phases],
            agents=[agent.model_copy() for agent in agents],
            recent_errors=list(self.recent_errors),
            parse_errors=list(self.parse_errors),
            total_tasks=self.total_tasks,
            completed_tasks=self.completed_tasks,
            failed_tasks=self.failed_tasks,
            in_progress_tasks=self._count("in_progress"),
            blocked_tasks=self._count("blocked"),
            overall_progress=self.overall_progress,
            running_agents=sum(1 for agent in agents if agent.status == "running"),
            error_agents=sum(1 for agent in agents if agent.status == "error"),
            tasks_loaded_at=self.tasks_loaded_at,
            hooks_loaded_at=self.hooks_loaded_at,
        )
