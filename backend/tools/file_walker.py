from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterator


DEFAULT_IGNORE_DIRS = frozenset(
    {
        ".git",
        "node_modules",
        "dist",
        "build",
        "coverage",
        ".analysis-cache",
        "__pycache__",
        ".venv",
        ".pytest_cache",
        ".mypy_cache",
        ".tox",
        ".tool-audit",
    }
)


def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Compile a path glob into an anchored, case-insensitive regex.

    ``**`` spans directory separators, ``*`` stays within one segment and
    ``?`` matches a single non-separator character.
    """
    normalized = glob.replace("\\", "/")
    parts: list[str] = []
    i = 0
    while i < len(normalized):
        char = normalized[i]
        if char == "*":
            if normalized[i + 1 : i + 2] == "*":
                parts.append(".*")
                i += 2
                continue
            parts.append(r"[^/\\]*")
        elif char == "?":
            parts.append(r"[^/\\]")
        elif char == "/":
            parts.append("/")
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE)


def walk_files(
    root: Path,
    include_pattern: re.Pattern[str] | str | None = None,
    ignore_dirs: frozenset[str] = DEFAULT_IGNORE_DIRS,
) -> Iterator[Path]:
    pattern = glob_to_regex(include_pattern) if isinstance(include_pattern, str) else include_pattern
    root = Path(root)
    stack: list[Path] = [root]

    while stack:
        current = stack.pop()
        with os.scandir(current) as it:
            entries = sorted(it, key=lambda entry: entry.name)

        subdirs: list[Path] = []
        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir(follow_symlinks=False):
                if entry.name in ignore_dirs:
                    continue
                subdirs.append(Path(entry.path))
            elif entry.is_file(follow_symlinks=False):
                file_path = Path(entry.path)
                if pattern is not None:
                    relative = os.path.relpath(file_path, root).replace(os.sep, "/")
                    if not pattern.match(relative):
                        continue
                yield file_path

        # reversed so that pop() visits subdirectories in name order
        stack.extend(reversed(subdirs))
