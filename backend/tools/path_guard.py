from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .contracts import FileMissingError, PathEscapeError


RESERVED_DIRS = frozenset({".tool-audit"})


@dataclass(frozen=True)
class SafePath:
    absolute_path: Path
    relative_path: str


def _normalize(path: Path) -> str:
    return os.path.normcase(str(path))


def is_within_root(root: Path, candidate: Path) -> bool:
    root_norm = _normalize(root)
    candidate_norm = _normalize(candidate)
    if root_norm == candidate_norm:
        return True
    try:
        relative = os.path.relpath(candidate_norm, root_norm)
    except ValueError:
        # Different drives on Windows.
        return False
    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return False
    return not os.path.isabs(relative)


def resolve_safe_path(target: str | os.PathLike[str], root: str | os.PathLike[str] | None = None) -> SafePath:
    base = Path(root).resolve() if root is not None else Path.cwd().resolve()
    raw = Path(os.fspath(target))
    candidate = raw.resolve() if raw.is_absolute() else (base / raw).resolve()

    if not is_within_root(base, candidate):
        raise PathEscapeError(
            f"Path escapes root directory: {os.fspath(target)}",
            details={"path": os.fspath(target)},
        )

    relative = os.path.relpath(candidate, base)
    first = Path(relative).parts[0] if relative != os.curdir else ""
    if first in RESERVED_DIRS:
        raise PathEscapeError(
            f"Path is reserved: {os.fspath(target)}",
            details={"path": os.fspath(target)},
        )
    return SafePath(absolute_path=candidate, relative_path=relative.replace(os.sep, "/"))


def ensure_file_exists(path: Path, display: str | None = None) -> None:
    if not path.exists():
        raise FileMissingError(
            f"File not found: {display or path}",
            details={"path": display or str(path)},
        )
