"""Parse a TASKS.md document into phases and tasks."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from ccboard.models import Phase, Task, TaskDocument, TaskStatus

logger = logging.getLogger("ccboard.parsers")

# Literal status tokens, matched case-sensitively
_STATUS_TOKENS: dict[str, TaskStatus] = {
    "[ ]": "pending",
    "[x]": "completed",
    "[InProgress]": "in_progress",
    "[Failed]": "failed",
    "[Blocked]": "blocked",
}

_PHASE_PATTERN = re.compile(
    r"^\s{0,3}#{1,6}\s+(?P<id>Phase\s+[A-Za-z0-9][\w.]*)\s*[:\-]?\s*(?P<name>.*?)\s*#*\s*$"
)
_TASK_PATTERN = re.compile(
    r"^\s*[-*]\s+(?P<token>\[ \]|\[x\]|\[InProgress\]|\[Failed\]|\[Blocked\])\s+(?P<body>.+?)\s*$"
)
_TASK_ID_PATTERN = re.compile(r"^(?P<id>[A-Za-z0-9][\w.-]*):\s*(?P<name>.*)$")
_AGENT_PATTERN = re.compile(r"\s+@(?P<agent>[\w.-]+)$")


class DocumentFormatError(ValueError):
    """Raised when a task document has no recognizable phase structure."""


def _extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    match = re.match(r"^---\s*\n(.*?)\n---\s*\n?(.*)", text, re.DOTALL)
    if not match:
        return {}, text
    try:
        fm = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError:
        fm = {}
    if not isinstance(fm, dict):
        fm = {}
    return fm, match.group(2)


def _parse_task_body(body: str, position: int) -> tuple[str, str, str | None]:
    agent = None
    agent_match = _AGENT_PATTERN.search(body)
    if agent_match:
        agent = agent_match.group("agent")
        body = body[: agent_match.start()].rstrip()

    id_match = _TASK_ID_PATTERN.match(body)
    if id_match:
        task_id = id_match.group("id")
        name = id_match.group("name").strip() or task_id
    else:
        task_id = f"T{position}"
        name = body
    return task_id, name, agent


def parse_tasks_document(text: str) -> TaskDocument:
    """Parse TASKS.md text into a TaskDocument.

    Headings like ``## Phase 1: Core`` open a phase; bullet lines carrying one
    of the five status tokens add a task to the latest phase. Anything else is
    commentary and is skipped.
    """
    fm, body = _extract_frontmatter(text)
    title = fm.get("title", "")
    document = TaskDocument(title=str(title) if title else "")

    current: Phase | None = None
    seen_ids: set[str] = set()
    # Only "\n" ends a line; form feeds and Unicode separators stay in the text
    for line_number, raw in enumerate(body.split("\n"), start=1):
        line = raw.rstrip("\r")
        phase_match = _PHASE_PATTERN.match(line)
        if phase_match:
            phase_id = re.sub(r"\s+", " ", phase_match.group("id"))
            name = (phase_match.group("name") or "").strip() or phase_id
            current = Phase(id=phase_id, name=name)
            document.phases.append(current)
            seen_ids = set()
            continue

        task_match = _TASK_PATTERN.match(line)
        if not task_match:
            continue
        if current is None:
            logger.debug("Task line %d appears before any phase heading; skipped", line_number)
            continue

        task_id, name, agent = _parse_task_body(task_match.group("body"), len(current.tasks) + 1)
        if task_id in seen_ids:
            logger.warning("Duplicate task id %s in %s (line %d); skipped", task_id, current.id, line_number)
            continue
        seen_ids.add(task_id)
        current.tasks.append(Task(
            id=task_id,
            name=name,
            status=_STATUS_TOKENS[task_match.group("token")],
            agent=agent,
        ))

    if not document.phases:
        raise DocumentFormatError("No phase headings found in task document")
    return document


def parse_tasks_file(path: Path) -> TaskDocument:
    """Read and parse a TASKS.md file.

    Raises OSError if it cannot be read and DocumentFormatError if it has no
    phases. Bytes that are not valid UTF-8 become U+FFFD.
    """
    text = path.read_bytes().decode("utf-8", errors="replace")
    return parse_tasks_document(text)
