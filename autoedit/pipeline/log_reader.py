"""Snapshot log decoding.

The log is line oriented: ``#`` starts a comment running to the end of the
line, and every brace-balanced group of lines holds one JSON object::

    # session started
    {"type": "Keyframe", "time": 1601553296000,
     "game": {"ingame": true, ...}, "player0": {"life": 4, ...}}
    {"type": "Delta", "time": 1601553296120, "player0": {"life": 3}}
"""
import json
import logging
from pathlib import Path
from typing import Iterator, List, Optional

from .state import (
    SessionState,
    StateGroup,
    StateUpdate,
    SubjectState,
    UpdateKind,
    find_field,
)

logger = logging.getLogger(__name__)

# Log object key for each state group
GROUP_KEYS = {
    StateGroup.GAME: "game",
    StateGroup.PLAYER: "player0",
}


class LogParseError(ValueError):
    """Malformed snapshot log."""

    def __init__(self, message: str, line: int, offset: int):
        super().__init__(f"{message} (line {line}, byte offset {offset})")
        self.line = line
        self.offset = offset


def strip_comment(line: str) -> str:
    index = line.find("#")
    return line if index < 0 else line[:index]


def iter_record_texts(text: str) -> Iterator[tuple]:
    """Split log text into balanced brace groups.

    Yields ``(record_text, line, offset)`` where line and offset locate the
    opening brace of the group.
    """
    depth = 0
    buffer: List[str] = []
    start_line = 0
    start_offset = 0
    offset = 0

    for line_no, raw_line in enumerate(text.splitlines(keepends=True), start=1):
        line = strip_comment(raw_line)

        for col, char in enumerate(line):
            char_offset = offset + len(line[:col].encode("utf-8"))

            if depth == 0:
                if char == "{":
                    start_line, start_offset = line_no, char_offset
                    buffer = []
                elif char == "}":
                    raise LogParseError("Unbalanced closing brace", line_no, char_offset)
                elif char.isspace():
                    continue
                else:
                    raise LogParseError(
                        f"Unexpected {char!r} outside of a record", line_no, char_offset
                    )

            buffer.append(char)
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    yield "".join(buffer), start_line, start_offset
                    buffer = []

        if depth > 0:
            buffer.append("\n")

        offset += len(raw_line.encode("utf-8"))

    if depth > 0:
        raise LogParseError("Unterminated record at end of log", start_line, start_offset)


def _decode_group(data: dict, group: StateGroup, target, line: int, offset: int):
    values = data.get(GROUP_KEYS[group])
    if values is None:
        return target
    if not isinstance(values, dict):
        raise LogParseError(
            f"'{GROUP_KEYS[group]}' must be an object", line, offset
        )

    for key, value in values.items():
        spec = find_field(group, key)
        if spec is None:
            logger.debug(f"Ignoring untracked field {group.value}.{key}")
            continue
        if value is None:
            continue
        try:
            setattr(target, spec.attr, spec.coerce(value))
        except TypeError as e:
            raise LogParseError(str(e), line, offset)

    return target


def decode_record(record_text: str, line: int = 0, offset: int = 0) -> StateUpdate:
    """Decode one JSON record into a StateUpdate."""
    try:
        data = json.loads(record_text)
    except json.JSONDecodeError as e:
        raise LogParseError(f"Invalid JSON: {e.msg}", line, offset)

    if not isinstance(data, dict):
        raise LogParseError("Record must be a JSON object", line, offset)

    try:
        kind = UpdateKind(data.get("type"))
    except ValueError:
        raise LogParseError(f"Unknown record type {data.get('type')!r}", line, offset)

    time_ms = data.get("time")
    if isinstance(time_ms, bool) or not isinstance(time_ms, int):
        raise LogParseError(f"Record time must be integer milliseconds, got {time_ms!r}", line, offset)

    return StateUpdate(
        kind=kind,
        timestamp=time_ms / 1000.0,
        session=_decode_group(data, StateGroup.GAME, SessionState(), line, offset),
        subject=_decode_group(data, StateGroup.PLAYER, SubjectState(), line, offset),
    )


def iter_state_updates(text: str) -> Iterator[StateUpdate]:
    """Lazily decode every record of a snapshot log."""
    for record_text, line, offset in iter_record_texts(text):
        yield decode_record(record_text, line, offset)


def read_state_updates(text: str) -> List[StateUpdate]:
    """Decode a whole log.

    The log is validated completely before anything is returned, so a
    malformed tail never yields partial results.
    """
    updates = list(iter_state_updates(text))
    logger.info(f"Read {len(updates)} state updates")
    return updates


def load_state_updates(path: str | Path, encoding: Optional[str] = "utf-8") -> List[StateUpdate]:
    """Read and decode a snapshot log file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Event log not found: {path}")

    logger.info(f"Reading event log: {path}")
    return read_state_updates(path.read_text(encoding=encoding))
