"""Query text input: from a file, or typed into the user's $EDITOR."""

from __future__ import annotations

import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from cwlogs.core.errors import CwError, QueryFileNotFound

# Seed line so editors pick Logs Insights highlighting; stripped afterwards.
QUERY_TEMPLATE = "# vim: ft=lq\n"
DEFAULT_EDITOR = "vi"


def read_query_file(path: str) -> str:
    query_path = Path(path)
    if not query_path.is_file():
        raise QueryFileNotFound(f"Query file does not exist: {path}")
    return query_path.read_text(encoding="utf-8")


def open_in_editor(initial: str, editor: Optional[str] = None) -> str:
    """Open `initial` in an editor and return the saved contents."""

    command = editor or os.getenv("VISUAL") or os.getenv("EDITOR") or DEFAULT_EDITOR
    handle = tempfile.NamedTemporaryFile("w", suffix=".lq", delete=False, encoding="utf-8")
    try:
        with handle:
            handle.write(initial)
        try:
            subprocess.run([*shlex.split(command), handle.name], check=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise CwError(f"Editor '{command}' failed: {exc}") from exc
        return Path(handle.name).read_text(encoding="utf-8")
    finally:
        os.unlink(handle.name)


def query_from_editor(editor: Optional[str] = None) -> str:
    text = open_in_editor(QUERY_TEMPLATE, editor)
    if text.startswith(QUERY_TEMPLATE):
        return text[len(QUERY_TEMPLATE):]
    return text
