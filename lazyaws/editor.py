"""Editor launch helper for editing downloaded files.

Runs ``$EDITOR`` (``vi`` when unset) on a local file while the terminal is
handed off. Returns an error message string instead of raising for
UI-friendly handling.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from collections.abc import Mapping
from pathlib import Path

DEFAULT_EDITOR = "vi"


def editor_command(environ: Mapping[str, str] | None = None) -> list[str]:
    env = os.environ if environ is None else environ
    editor_env = env.get("EDITOR", "").strip() or DEFAULT_EDITOR
    return shlex.split(editor_env)


def run_editor(target: Path, environ: Mapping[str, str] | None = None) -> str | None:
    cmd = editor_command(environ)
    if not cmd:
        return "Cannot edit: $EDITOR is empty."
    try:
        subprocess.run([*cmd, str(target)], check=False)
    except OSError as exc:
        return f"Failed to launch editor: {exc}"
    return None
