"""
Low-level htpasswd file helpers: atomic replace and line-level upsert.

The file format is one ``username:hash`` entry per line, newline terminated.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from usrprov.errors import StoreIOError


def read_text(path: Path) -> str:
    """Read the whole file. Raises StoreIOError on any OS failure."""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise StoreIOError(f"Cannot read credential store {path}: {e}") from e


def atomic_write_text(path: Path, data: str) -> None:
    """Replace ``path`` with ``data`` via temp file + rename in the same directory.

    A concurrent reader sees either the old file or the new one, never a
    truncated mix. The temp file is created 0600 by mkstemp and keeps that mode.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise StoreIOError(f"Cannot write credential store {path}: {e}") from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise StoreIOError(f"Cannot write credential store {path}: {e}") from e


def entry_username(line: str) -> str:
    return line.split(":", 1)[0]


def _entries(contents: str) -> list[str]:
    # Only "\n" ends an entry; str.splitlines would also split on U+2028 and friends
    lines = contents.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def upsert_line(contents: str, username: str, hashed: str) -> tuple[str, bool]:
    """Insert or replace the entry for ``username``.

    Returns (new_contents, replaced). All other lines are kept byte-identical.
    """
    new_line = f"{username}:{hashed}"
    lines = _entries(contents)
    for i, line in enumerate(lines):
        if entry_username(line) == username:
            lines[i] = new_line
            terminated = contents.endswith("\n") or i == len(lines) - 1
            return "\n".join(lines) + ("\n" if terminated else ""), True

    lines.append(new_line)
    return "\n".join(lines) + "\n", False


def usernames(contents: str) -> list[str]:
    return [entry_username(line) for line in _entries(contents) if line.strip()]
