"""Context-anchored patch parsing and application.

A diff is split into hunks of context/add/remove tokens. Each hunk's old
block (context + removed lines) must occur verbatim in the file; the first
occurrence is replaced by the new block (context + added lines). Matching is
exact and first-match only: a hunk that does not match aborts the whole
operation before anything is written.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal

from utils.fs import join_lines, read_text, split_lines, stage_text

from .contracts import (
    FileAlreadyExistsError,
    FileMissingError,
    InvalidArgsError,
    PatchMismatchError,
)
from .path_guard import resolve_safe_path


TokenType = Literal["context", "add", "remove"]
OperationType = Literal["create_file", "update_file", "delete_file"]

HEADER_PREFIXES = ("diff ", "index ", "---", "+++", "***", "@@@")
HUNK_MARKER = "@@"

_FILE_HEADER = re.compile(r"^\*\*\*\s+(Update|Add|Delete)\s+File:\s*(.+)$", re.IGNORECASE)
_ACTION_TO_TYPE: dict[str, OperationType] = {
    "add": "create_file",
    "update": "update_file",
    "delete": "delete_file",
}


@dataclass(frozen=True)
class PatchToken:
    type: TokenType
    text: str


@dataclass
class PatchHunk:
    tokens: list[PatchToken] = field(default_factory=list)

    @property
    def old_block(self) -> list[str]:
        return [token.text for token in self.tokens if token.type != "add"]

    @property
    def new_block(self) -> list[str]:
        return [token.text for token in self.tokens if token.type != "remove"]


@dataclass(frozen=True)
class PatchOperation:
    type: OperationType
    path: str
    diff: str | None = None


@dataclass
class PlannedChange:
    type: OperationType
    path: str
    absolute_path: Path
    content: str | None
    hunks_applied: int = 0


def _diff_lines(text: str) -> list[str]:
    lines = split_lines(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def parse_diff(text: str) -> list[PatchHunk]:
    hunks: list[PatchHunk] = []
    current: PatchHunk | None = None

    for line in _diff_lines(text):
        # File headers and end markers may sit between hunks too.
        if line.startswith(HEADER_PREFIXES):
            continue
        if line.startswith(HUNK_MARKER):
            current = PatchHunk()
            hunks.append(current)
            continue
        if line.startswith("\\"):
            continue
        if current is None:
            current = PatchHunk()
            hunks.append(current)

        if line.startswith("+"):
            current.tokens.append(PatchToken("add", line[1:]))
        elif line.startswith("-"):
            current.tokens.append(PatchToken("remove", line[1:]))
        else:
            current.tokens.append(PatchToken("context", line))

    return [hunk for hunk in hunks if hunk.tokens]


def _token_matches(token: PatchToken, line: str) -> bool:
    if line == token.text:
        return True
    # Unified diffs prefix context lines with a single space.
    return token.type == "context" and token.text.startswith(" ") and line == token.text[1:]


def find_block(lines: list[str], block: list[PatchToken]) -> int:
    if not block:
        return -1
    for start in range(len(lines) - len(block) + 1):
        if all(_token_matches(token, lines[start + offset]) for offset, token in enumerate(block)):
            return start
    return -1


def apply_hunks(lines: list[str], hunks: Iterable[PatchHunk]) -> list[str]:
    output = list(lines)
    for number, hunk in enumerate(hunks, start=1):
        anchor = [token for token in hunk.tokens if token.type != "add"]
        if not anchor:
            raise PatchMismatchError(
                f"Hunk {number} has no context or removed lines to anchor it",
                details={"hunk": number},
            )

        start = find_block(output, anchor)
        if start < 0:
            raise PatchMismatchError(
                f"Hunk {number} could not be applied: expected lines not found",
                details={"hunk": number, "expected": [token.text for token in anchor][:20]},
            )

        replacement: list[str] = []
        cursor = start
        for token in hunk.tokens:
            if token.type == "context":
                replacement.append(output[cursor])
                cursor += 1
            elif token.type == "remove":
                cursor += 1
            else:
                replacement.append(token.text)
        output[start : start + len(anchor)] = replacement
    return output


def render_new_file(diff: str) -> str:
    lines = [text for hunk in parse_diff(diff) for text in hunk.new_block]
    if not lines:
        return ""
    content = join_lines(lines)
    return content + "\n" if diff.endswith(("\n", "\r\n")) else content


def parse_patch_document(text: str) -> list[PatchOperation]:
    """Parse the ``*** Begin Patch`` multi-file envelope into operations."""
    lines = split_lines(text)
    operations: list[PatchOperation] = []
    i = 0

    while i < len(lines):
        line = lines[i]
        if not line.startswith("*** "):
            i += 1
            continue
        if line.startswith("*** Begin Patch"):
            i += 1
            continue
        if line.startswith("*** End Patch"):
            break
        if line.startswith("*** Move to:"):
            raise InvalidArgsError("File moves are not supported")

        header = _FILE_HEADER.match(line)
        if header is None:
            i += 1
            continue

        op_type = _ACTION_TO_TYPE[header.group(1).lower()]
        path = header.group(2).split("->", 1)[0].strip()
        if not path:
            raise InvalidArgsError("Invalid patch header: missing file path")
        i += 1

        if op_type == "delete_file":
            operations.append(PatchOperation(type=op_type, path=path))
            continue

        body: list[str] = []
        while i < len(lines):
            current = lines[i]
            if current.startswith("*** End of File"):
                i += 1
                continue
            if current.startswith("*** "):
                break
            body.append(current)
            i += 1
        while body and body[-1] == "":
            body.pop()
        operations.append(PatchOperation(type=op_type, path=path, diff=join_lines(body) + "\n"))

    if not operations:
        raise InvalidArgsError("Patch does not target any files")
    return operations


class _WorkspaceView:
    """Pending file contents layered over the disk; ``None`` marks deletion."""

    def __init__(self) -> None:
        self._pending: dict[Path, str | None] = {}

    def exists(self, path: Path) -> bool:
        if path in self._pending:
            return self._pending[path] is not None
        return path.exists()

    def read(self, path: Path) -> str:
        pending = self._pending.get(path)
        if pending is not None:
            return pending
        return read_text(path)

    def set(self, path: Path, content: str | None) -> None:
        self._pending[path] = content

    def is_file(self, path: Path) -> bool:
        if path in self._pending:
            return self._pending[path] is not None
        return path.exists() and not path.is_dir()


def _check_parents(view: _WorkspaceView, path: Path, root: Path, relative: str) -> None:
    for parent in path.parents:
        if parent == root:
            return
        if view.is_file(parent):
            raise InvalidArgsError(
                f"Parent of {relative} is not a directory",
                details={"path": relative},
            )


def plan_operations(operations: Iterable[PatchOperation], root: Path) -> list[PlannedChange]:
    view = _WorkspaceView()
    planned: list[PlannedChange] = []
    base = resolve_safe_path(".", root).absolute_path

    for operation in operations:
        target = resolve_safe_path(operation.path, root)
        path = target.absolute_path
        relative = target.relative_path

        if operation.type == "create_file":
            if view.exists(path):
                raise FileAlreadyExistsError(f"File already exists: {relative}", details={"path": relative})
            _check_parents(view, path, base, relative)
            content = render_new_file(operation.diff or "")
            view.set(path, content)
            planned.append(PlannedChange(operation.type, relative, path, content))
            continue

        if not view.exists(path):
            raise FileMissingError(f"File not found: {relative}", details={"path": relative})
        if path.is_dir():
            raise InvalidArgsError(f"Not a file: {relative}", details={"path": relative})

        if operation.type == "delete_file":
            view.set(path, None)
            planned.append(PlannedChange(operation.type, relative, path, None))
            continue

        if operation.type == "update_file":
            hunks = parse_diff(operation.diff or "")
            if not hunks:
                raise InvalidArgsError(f"Diff for {relative} contains no hunks", details={"path": relative})
            try:
                updated = apply_hunks(split_lines(view.read(path)), hunks)
            except PatchMismatchError as exc:
                exc.details.setdefault("path", relative)
                exc.message = f"{relative}: {exc.message}"
                exc.args = (exc.message,)
                raise
            content = join_lines(updated)
            view.set(path, content)
            planned.append(PlannedChange(operation.type, relative, path, content, hunks_applied=len(hunks)))
            continue

        raise InvalidArgsError(f"Unsupported patch operation: {operation.type}")

    return planned


def commit_changes(planned: Iterable[PlannedChange]) -> None:
    """Stage every write before touching any target, then swap them in."""
    final: dict[Path, str | None] = {}
    for change in planned:
        final[change.absolute_path] = change.content

    staged: list[tuple[Path, Path]] = []
    try:
        for path, content in final.items():
            if content is not None:
                temp, _ = stage_text(path, content)
                staged.append((temp, path))
    except BaseException:
        for temp, _ in staged:
            temp.unlink(missing_ok=True)
        raise

    for temp, path in staged:
        os.replace(temp, path)
    for path, content in final.items():
        if content is None and path.exists():
            path.unlink()


def apply_operations(operations: Iterable[PatchOperation], root: Path) -> list[PlannedChange]:
    planned = plan_operations(operations, root)
    commit_changes(planned)
    return planned


def apply_operation(operation: PatchOperation, root: Path) -> PlannedChange:
    return apply_operations([operation], root)[0]
