from __future__ import annotations

import os
import tempfile
from pathlib import Path


def read_text(path: Path, encoding: str = "utf-8") -> str:
    return path.read_text(encoding=encoding, errors="replace")


def split_lines(text: str) -> list[str]:
    """Split on LF/CRLF, keeping a trailing empty entry for a final newline.

    ``join_lines(split_lines(text))`` reproduces ``text`` with CRLF
    normalised to LF.
    """
    return text.replace("\r\n", "\n").split("\n")


def join_lines(lines: list[str]) -> str:
    return "\n".join(lines)


def _target_mode(path: Path) -> int:
    if path.exists():
        return path.stat().st_mode & 0o7777
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def content_lines(text: str) -> list[str]:
    """Lines of ``text`` split only on LF/CRLF, without a trailing empty entry."""
    if not text:
        return []
    lines = split_lines(text)
    if lines[-1] == "":
        lines.pop()
    return lines


def stage_text(path: Path, text: str, encoding: str = "utf-8") -> tuple[Path, int]:
    """Write ``text`` to a sibling temp file of ``path`` and return it unreplaced."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = text.encode(encoding)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
        os.chmod(tmp_name, _target_mode(path))
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return Path(tmp_name), len(payload)


def write_text_atomic(path: Path, text: str, encoding: str = "utf-8") -> int:
    """Replace ``path`` with ``text`` through a sibling temp file."""
    temp, size = stage_text(path, text, encoding)
    try:
        os.replace(temp, path)
    except BaseException:
        temp.unlink(missing_ok=True)
        raise
    return size
