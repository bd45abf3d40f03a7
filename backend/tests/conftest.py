from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from tools import create_default_registry  # noqa: E402
from tools.base import ToolContext  # noqa: E402
from tools.registry import ToolRegistry  # noqa: E402


@pytest.fixture()
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / ".git").mkdir()

    (root / "README.md").write_text("# Demo\nHello world\n", encoding="utf-8")
    (root / "src" / "main.py").write_text(
        "def main():\n    print('hello')\n    return 0\n",
        encoding="utf-8",
    )
    (root / "src" / "util.py").write_text("VALUE = 1\n", encoding="utf-8")
    (root / "docs" / "guide.md").write_text("Guide\nhello again\n", encoding="utf-8")
    (root / "node_modules" / "pkg" / "index.js").write_text("hello from deps\n", encoding="utf-8")
    (root / ".git" / "config").write_text("hello git\n", encoding="utf-8")
    return root


@pytest.fixture()
def tool_context(project_root: Path) -> ToolContext:
    return ToolContext(
        root_path=project_root,
        logger=logging.getLogger("tests.tools"),
        run_id="run-test",
    )


@pytest.fixture()
def registry(tmp_path_factory: pytest.TempPathFactory) -> ToolRegistry:
    return create_default_registry(audit_file=tmp_path_factory.mktemp("audit") / "tool_audit.jsonl")
