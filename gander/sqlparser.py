"""Splitting annotated SQL migration files into statements."""

from __future__ import annotations

import io
import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import IO, Iterator, Union

from gander.envsubst import InterpolationError, interpolate

__all__ = [
    "Annotation",
    "AnnotationError",
    "Direction",
    "ParsedSQL",
    "SQLParseError",
    "direction_from_bool",
    "ends_with_semicolon",
    "extract_annotation",
    "parse_all_from_fs",
    "parse_sql_migration",
]

_log = logging.getLogger(__name__)

_SCAN_BUF_SIZE = 4 * 1024 * 1024
_GRAY = "\033[90m"
_RESET = "\033[00m"


class SQLParseError(ValueError):
    """Raised when a SQL migration cannot be parsed."""


class AnnotationError(SQLParseError):
    """Raised when a ``-- +goose`` annotation line is malformed or unknown."""


class Direction(str, Enum):
    """Direction in which a migration is applied."""

    UP = "up"
    DOWN = "down"

    def __str__(self) -> str:
        return self.value

    def to_bool(self) -> bool:
        return self is Direction.UP


def direction_from_bool(value: bool) -> Direction:
    """Return UP for a true value and DOWN otherwise."""
    return Direction.UP if value else Direction.DOWN


class Annotation(str, Enum):
    """Annotations recognised after ``-- +goose``."""

    UP = "Up"
    DOWN = "Down"
    STATEMENT_BEGIN = "StatementBegin"
    STATEMENT_END = "StatementEnd"
    NO_TRANSACTION = "NO TRANSACTION"
    ENVSUB_ON = "ENVSUB ON"
    ENVSUB_OFF = "ENVSUB OFF"

    def __str__(self) -> str:
        return self.value


@dataclass
class ParsedSQL:
    """Statements of both directions of one migration file."""

    use_tx: bool = True
    up: list[str] = field(default_factory=list)
    down: list[str] = field(default_factory=list)


class _State(IntEnum):
    START = 0
    UP = 1
    STATEMENT_BEGIN_UP = 2
    STATEMENT_END_UP = 3
    DOWN = 4
    STATEMENT_BEGIN_DOWN = 5
    STATEMENT_END_DOWN = 6


_UP_STATES = {_State.UP, _State.STATEMENT_BEGIN_UP, _State.STATEMENT_END_UP}
_DOWN_STATES = {_State.DOWN, _State.STATEMENT_BEGIN_DOWN, _State.STATEMENT_END_DOWN}
_END_STATES = {_State.STATEMENT_END_UP, _State.STATEMENT_END_DOWN}


class _StateMachine:
    def __init__(self, state: _State, verbose: bool) -> None:
        self.state = state
        self.verbose = verbose

    def set(self, new: _State) -> None:
        self.note(f"set {int(self.state)} => {int(new)}")
        self.state = new

    def note(self, msg: str) -> None:
        if self.verbose:
            _log.info("%sStateMachine: %s%s", _GRAY, msg, _RESET)


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def extract_annotation(line: str) -> Annotation:
    """Return the annotation of a ``-- +goose [annotation]`` line."""
    if line.startswith((" ", "\t")):
        raise AnnotationError(f"{_quote(line)} contains leading whitespace: invalid annotation")
    cmd = line.replace("--", "").replace("+goose", "", 1)
    if "+goose" in cmd:
        raise AnnotationError(
            f"{_quote(cmd)} contains multiple '+goose' annotations: invalid annotation"
        )
    cmd = cmd.strip()
    if not cmd:
        raise AnnotationError("empty annotation")
    folded = cmd.casefold()
    for annotation in Annotation:
        if annotation.value.casefold() == folded:
            return annotation
    raise AnnotationError(f"{_quote(cmd)} not supported: invalid annotation")


def ends_with_semicolon(line: str) -> bool:
    """Tell whether the last word before any ``--`` comment ends with a semicolon."""
    prev = ""
    for word in line.split():
        if word.startswith("--"):
            break
        prev = word
    return prev.endswith(";")


def _missing_semicolon(state: _State, direction: Direction, remaining: str) -> SQLParseError:
    return SQLParseError(
        f"failed to parse migration: state {int(state)}, direction: {direction}: "
        f"unexpected unfinished SQL query: {_quote(remaining)}: missing semicolon?"
    )


def _scan_lines(stream: IO) -> Iterator[str]:
    data = stream.read()
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8", errors="replace")
    if not data:
        return
    lines = data.split("\n")
    if lines[-1] == "":
        lines.pop()
    for line in lines:
        if len(line) >= _SCAN_BUF_SIZE:
            raise SQLParseError("failed to scan migration: token too long")
        yield line[:-1] if line.endswith("\r") else line


def parse_sql_migration(
    stream: IO, direction: Union[Direction, str], debug: bool = False
) -> tuple[list[str], bool]:
    """Split a migration into the statements of one direction.

    Statements end at a line whose last word ends with a semicolon, or at a
    ``-- +goose StatementEnd`` annotation when they are wrapped in
    StatementBegin/StatementEnd. Returns the statements and whether the
    migration runs inside a transaction.
    """
    direction = Direction(direction)
    machine = _StateMachine(_State.START, debug)
    use_tx = True
    use_envsub = False
    buf: list[str] = []
    stmts: list[str] = []

    def flush() -> None:
        stmts.append("".join(buf).strip())
        buf.clear()

    for line in _scan_lines(stream):
        if debug:
            _log.info("%s", line)
        stripped = line.strip()
        if machine.state is _State.START and stripped == "":
            continue

        if stripped.startswith("--") and "+goose" in line:
            try:
                cmd = extract_annotation(line)
            except AnnotationError as exc:
                raise SQLParseError(
                    f"failed to parse annotation line {_quote(line)}: {exc}"
                ) from exc

            if cmd is Annotation.UP:
                if machine.state is not _State.START:
                    raise SQLParseError(
                        f"duplicate '-- +goose Up' annotations; stateMachine={int(machine.state)}"
                    )
                machine.set(_State.UP)
                continue
            if cmd is Annotation.DOWN:
                if machine.state not in (_State.UP, _State.STATEMENT_END_UP):
                    raise SQLParseError(
                        "must start with '-- +goose Up' annotation, "
                        f"stateMachine={int(machine.state)}"
                    )
                remaining = "".join(buf).strip()
                if remaining:
                    raise _missing_semicolon(machine.state, direction, remaining)
                machine.set(_State.DOWN)
                continue
            if cmd is Annotation.STATEMENT_BEGIN:
                if machine.state in (_State.UP, _State.STATEMENT_END_UP):
                    machine.set(_State.STATEMENT_BEGIN_UP)
                elif machine.state in (_State.DOWN, _State.STATEMENT_END_DOWN):
                    machine.set(_State.STATEMENT_BEGIN_DOWN)
                else:
                    raise SQLParseError(
                        "'-- +goose StatementBegin' must be defined after '-- +goose Up' or "
                        f"'-- +goose Down' annotation, stateMachine={int(machine.state)}"
                    )
                continue
            if cmd is Annotation.STATEMENT_END:
                if machine.state is _State.STATEMENT_BEGIN_UP:
                    machine.set(_State.STATEMENT_END_UP)
                elif machine.state is _State.STATEMENT_BEGIN_DOWN:
                    machine.set(_State.STATEMENT_END_DOWN)
                else:
                    raise SQLParseError(
                        "'-- +goose StatementEnd' must be defined after "
                        "'-- +goose StatementBegin'"
                    )
            elif cmd is Annotation.NO_TRANSACTION:
                use_tx = False
                continue
            elif cmd is Annotation.ENVSUB_ON:
                use_envsub = True
                continue
            elif cmd is Annotation.ENVSUB_OFF:
                use_envsub = False
                continue

        # Leading comments and blank lines before a statement are dropped; once a
        # statement has begun, everything up to its end is kept.
        if not buf and (stripped.startswith("--") or line == ""):
            machine.note("ignore comment")
            continue

        if machine.state not in _END_STATES:
            if use_envsub:
                try:
                    line = interpolate(line, os.environ)
                except InterpolationError as exc:
                    raise SQLParseError(
                        f"variable substitution failed: {exc}:\n{line}"
                    ) from exc
            buf.append(line + "\n")

        if machine.state in _UP_STATES:
            if direction is Direction.DOWN:
                buf.clear()
                machine.note("ignore down")
                continue
        elif machine.state in _DOWN_STATES:
            if direction is Direction.UP:
                buf.clear()
                machine.note("ignore up")
                continue
        else:
            raise SQLParseError(
                f"failed to parse migration: unexpected state {int(machine.state)} "
                f"on line {_quote(line)}"
            )

        if machine.state is _State.UP:
            if ends_with_semicolon(line):
                flush()
                machine.note("store simple Up query")
        elif machine.state is _State.DOWN:
            if ends_with_semicolon(line):
                flush()
                machine.note("store simple Down query")
        elif machine.state is _State.STATEMENT_END_UP:
            flush()
            machine.note("store Up statement")
            machine.set(_State.UP)
        elif machine.state is _State.STATEMENT_END_DOWN:
            flush()
            machine.note("store Down statement")
            machine.set(_State.DOWN)

    if machine.state is _State.START:
        raise SQLParseError(
            "failed to parse migration: must start with '-- +goose Up' annotation"
        )
    if machine.state in (_State.STATEMENT_BEGIN_UP, _State.STATEMENT_BEGIN_DOWN):
        raise SQLParseError(
            "failed to parse migration: missing '-- +goose StatementEnd' annotation"
        )
    remaining = "".join(buf).strip()
    if remaining:
        raise _missing_semicolon(machine.state, direction, remaining)
    return stmts, use_tx


def parse_all_from_fs(
    root: Union[str, os.PathLike], filename: str, debug: bool = False
) -> ParsedSQL:
    """Parse both directions of the migration *filename* found under *root*.

    A missing file raises FileNotFoundError.
    """
    data = (Path(root) / filename).read_bytes()
    results = {}
    for direction in Direction:
        try:
            results[direction] = parse_sql_migration(io.BytesIO(data), direction, debug)
        except SQLParseError as exc:
            raise SQLParseError(f"failed to parse {filename}: {exc}") from exc
    up, use_tx = results[Direction.UP]
    down, _ = results[Direction.DOWN]
    return ParsedSQL(use_tx=use_tx, up=up, down=down)