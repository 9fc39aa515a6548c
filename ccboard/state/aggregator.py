"""Fold hook events into per-agent lifecycle state."""
from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from ccboard.analysis.rules import classify_error
from ccboard.models import AgentState, ErrorRecord, HookEvent

logger = logging.getLogger("ccboard.state")

DEFAULT_ERROR_CAPACITY = 50


class AgentStateAggregator:
    """Applies hook events, in arrival order, to an agent map and error history.

    Agents are created on first sight and never removed. Error history is a
    bounded deque, so the oldest record drops out once capacity is reached.
    """

    def __init__(self, max_errors: int = DEFAULT_ERROR_CAPACITY):
        self.max_errors = max(1, max_errors)

    def new_history(self) -> deque[ErrorRecord]:
        return deque(maxlen=self.max_errors)

    def apply(
        self,
        agents: dict[str, AgentState],
        errors: deque[ErrorRecord],
        events: Iterable[HookEvent],
    ) -> int:
        """Fold ``events`` into ``agents``/``errors`` in place. Returns events applied."""
        applied = 0
        for event in events:
            self.apply_one(agents, errors, event)
            applied += 1
        return applied

    def apply_one(self, agents: dict[str, AgentState], errors: deque[ErrorRecord], event: HookEvent) -> None:
        agent = agents.get(event.agent_id)
        if agent is None:
            agent = AgentState(agent_id=event.agent_id)
            agents[event.agent_id] = agent
        agent.event_count += 1

        kind = event.event_type
        if kind == "agent_start":
            agent.status = "running"
            agent.current_task = None
            agent.current_tool = None
        elif kind == "tool_start":
            agent.status = "running"
            agent.current_tool = event.tool_name
            agent.current_task = event.task_id
        elif kind == "tool_end":
            # Task stays set: the agent is still working it
            agent.current_tool = None
        elif kind == "agent_end":
            agent.status = "idle"
            agent.current_task = None
            agent.current_tool = None
        elif kind == "error":
            agent.status = "error"
            agent.error_count += 1
            message = event.error_message or ""
            analysis = classify_error(message)
            errors.append(ErrorRecord(
                agent_id=event.agent_id,
                timestamp=event.timestamp,
                message=message,
                category=analysis.category,
                retryable=analysis.retryable,
                suggestion=analysis.suggestion,
            ))
            logger.debug("Agent %s error classified as %s", event.agent_id, analysis.category)
