"""Decode JSONL hook event logs into HookEvent models.

Each non-blank line is decoded on its own, so a malformed line is recorded as
a HookParseError without disturbing its neighbours.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from ccboard.models import HookEvent, HookParseError, HookParseResult

logger = logging.getLogger("ccboard.parsers")

HOOK_FILE_SUFFIX = ".jsonl"


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "event"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def _decode_line(line: str) -> HookEvent:
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    try:
        return HookEvent.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(_format_validation_error(exc)) from exc


def decode_hook_events(text: str, *, source: str = "", first_line: int = 1) -> HookParseResult:
    """Decode JSONL text, collecting per-line failures instead of raising.

    Records are separated by ``\\n`` only (a trailing ``\\r`` is stripped), so
    U+2028 and other Unicode breaks inside a JSON string stay in their record.
    """
    result = HookParseResult()
    for line_number, line in enumerate(text.split("\n"), start=first_line):
        trimmed = line.strip()
        if not trimmed:
            continue
        try:
            result.events.append(_decode_line(trimmed))
        except ValueError as exc:
            logger.debug("Hook line %d%s rejected: %s", line_number, f" ({source})" if source else "", exc)
            result.errors.append(HookParseError(
                line_number=line_number,
                line_content=trimmed,
                error=str(exc),
                source=source,
            ))
    return result


def parse_hook_file(path: Path) -> HookParseResult:
    """Decode one hook log file. Raises OSError if the file cannot be read.

    Invalid UTF-8 is replaced rather than raised; the affected line then fails
    JSON or field validation like any other malformed record.
    """
    text = path.read_bytes().decode("utf-8", errors="replace")
    return decode_hook_events(text, source=path.name)


def list_hook_files(hooks_dir: Path) -> list[Path]:
    if not hooks_dir.is_dir():
        raise NotADirectoryError(f"Hook directory not found: {hooks_dir}")
    return sorted(p for p in hooks_dir.glob(f"*{HOOK_FILE_SUFFIX}") if p.is_file())


def events_for_agent(events: list[HookEvent], agent_id: str) -> list[HookEvent]:
    return [event for event in events if event.agent_id == agent_id]


def events_for_session(events: list[HookEvent], session_id: str) -> list[HookEvent]:
    return [event for event in events if event.session_id == session_id]


@dataclass
class _FileCursor:
    offset: int = 0
    lines: int = 0
    inode: int = 0
    open_line: bool = False  # last line was consumed before its newline arrived


@dataclass
class HookTailResult:
    result: HookParseResult = field(default_factory=HookParseResult)
    replay: bool = False  # True when earlier lines changed and a full re-fold is needed


class HookLogTail:
    """Incremental reader over a hook directory.

    Remembers how far each file has been consumed so a change notification
    only decodes appended lines. A file that shrank, was replaced or vanished
    forces a full replay, since events already folded can no longer be trusted.
    """

    def __init__(self, hooks_dir: Path):
        self.hooks_dir = hooks_dir
        self._cursors: dict[Path, _FileCursor] = {}

    def reset(self) -> None:
        self._cursors.clear()

    def read_all(self) -> HookParseResult:
        self.reset()
        tail = self.read_new()
        return tail.result

    def read_new(self) -> HookTailResult:
        files = list_hook_files(self.hooks_dir)
        tail = HookTailResult()

        vanished = set(self._cursors) - set(files)
        if vanished:
            logger.info("Hook files removed (%s); replaying", ", ".join(p.name for p in sorted(vanished)))
            return self._replay(files)

        for path in files:
            cursor = self._cursors.get(path)
            stat = path.stat()
            if cursor and (stat.st_size < cursor.offset or stat.st_ino != cursor.inode):
                logger.info("Hook file %s was truncated or replaced; replaying", path.name)
                return self._replay(files)
            tail.result.extend(self._consume(path, cursor or _FileCursor(inode=stat.st_ino)))
        return tail

    def _replay(self, files: list[Path]) -> HookTailResult:
        self.reset()
        tail = HookTailResult(replay=True)
        for path in files:
            tail.result.extend(self._consume(path, _FileCursor(inode=path.stat().st_ino)))
        return tail

    def _consume(self, path: Path, cursor: _FileCursor) -> HookParseResult:
        with path.open("rb") as fh:
            fh.seek(cursor.offset)
            chunk = fh.read()
        offset = cursor.offset
        pending = cursor.open_line
        if pending and chunk.startswith(b"\n"):
            # Newline closing a line that was already consumed
            chunk = chunk[1:]
            offset += 1
            pending = False
        complete_len = chunk.rfind(b"\n") + 1
        text = chunk[:complete_len].decode("utf-8", errors="replace")
        lines = cursor.lines + text.count("\n")
        parsed = decode_hook_events(text, source=path.name, first_line=cursor.lines + 1)

        # A trailing line without newline may still be mid-write; take it only if it decodes
        open_line = pending and not chunk
        remainder = chunk[complete_len:].decode("utf-8", errors="replace").strip()
        if remainder:
            try:
                event = _decode_line(remainder)
            except ValueError:
                event = None  # incomplete; re-read once its newline lands
            if event is not None:
                parsed.events.append(event)
                complete_len = len(chunk)
                lines += 1
                open_line = True

        self._cursors[path] = _FileCursor(
            offset=offset + complete_len,
            lines=lines,
            inode=cursor.inode,
            open_line=open_line,
        )
        return parsed
