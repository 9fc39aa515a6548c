"""Pydantic models for the dashboard state and its two input sources."""
from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, computed_field

TaskStatus = Literal["pending", "in_progress", "completed", "failed", "blocked"]
EventType = Literal["agent_start", "agent_end", "tool_start", "tool_end", "error"]
AgentStatus = Literal["idle", "running", "error"]
ErrorCategory = Literal["Type", "Runtime", "Network", "Permission", "Unknown"]
ChangeSource = Literal["tasks", "hooks"]


# ── Task document models ───────────────────────────────────────────

class Task(BaseModel):
    id: str
    name: str
    status: TaskStatus = "pending"
    agent: Optional[str] = None  # "@agent" assignment marker, if any


class Phase(BaseModel):
    id: str
    name: str
    tasks: list[Task] = Field(default_factory=list)

    @computed_field
    @property
    def progress(self) -> float:
        if not self.tasks:
            return 0.0
        done = sum(1 for task in self.tasks if task.status == "completed")
        return done / len(self.tasks)


class TaskDocument(BaseModel):
    title: str = ""
    phases: list[Phase] = Field(default_factory=list)

    @property
    def total_tasks(self) -> int:
        return sum(len(phase.tasks) for phase in self.phases)

    def count_status(self, status: TaskStatus) -> int:
        return sum(1 for phase in self.phases for task in phase.tasks if task.status == status)


# ── Hook event models ──────────────────────────────────────────────

class HookEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: EventType
    timestamp: AwareDatetime
    agent_id: str
    task_id: str
    session_id: str
    tool_name: Optional[str] = None
    error_message: Optional[str] = None


class HookParseError(BaseModel):
    line_number: int  # 1-based
    line_content: str
    error: str
    source: str = ""  # file name when decoded from a hook directory


class HookParseResult(BaseModel):
    events: list[HookEvent] = Field(default_factory=list)
    errors: list[HookParseError] = Field(default_factory=list)

    @property
    def line_count(self) -> int:
        return len(self.events) + len(self.errors)

    def extend(self, other: HookParseResult) -> None:
        self.events.extend(other.events)
        self.errors.extend(other.errors)


# ── Error analysis models ──────────────────────────────────────────

class ErrorAnalysis(BaseModel):
    category: ErrorCategory
    retryable: bool
    suggestion: str


class ErrorRecord(BaseModel):
    agent_id: str
    timestamp: datetime
    message: str
    category: ErrorCategory = "Unknown"
    retryable: bool = False
    suggestion: str = ""


# ── Agent state ────────────────────────────────────────────────────

class AgentState(BaseModel):
    agent_id: str
    status: AgentStatus = "idle"
    current_task: Optional[str] = None
    current_tool: Optional[str] = None
    error_count: int = 0
    event_count: int = 0


# ── Watcher / selection / snapshot ─────────────────────────────────

class ChangeNotification(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: ChangeSource


class WatchConfig(BaseModel):
    tasks_path: Path
    hooks_dir: Path
    debounce_ms: int = 100


class SelectionItem(BaseModel):
    index: int
    kind: Literal["phase", "task"]
    phase_index: int
    task_index: Optional[int] = None
    phase_id: str = ""
    task_id: Optional[str] = None
    label: str = ""


class SelectedTask(BaseModel):
    phase_index: int
    task_index: int
    phase_id: str
    task: Task


class DashboardSnapshot(BaseModel):
    title: str = ""
    phases: list[Phase] = Field(default_factory=list)
    agents: list[AgentState] = Field(default_factory=list)
    recent_errors: list[ErrorRecord] = Field(default_factory=list)
    parse_errors: list[HookParseError] = Field(default_factory=list)
    total_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    in_progress_tasks: int = 0
    blocked_tasks: int = 0
    overall_progress: float = 0.0
    running_agents: int = 0
    error_agents: int = 0
    tasks_loaded_at: Optional[datetime] = None
    hooks_loaded_at: Optional[datetime] = None
