from __future__ import annotations

import logging
import os
from collections.abc import Iterable

log = logging.getLogger(__name__)


def has_whitespace(path: str) -> bool:
    return any(c.isspace() for c in path)


def whitespace_warning(path: str, message: str) -> str:
    return f"THERE IS WHITESPACE IN: {path}\n{message}"


def format_and_append_classpath(lines: list[str], path: str | os.PathLike[str]) -> list[str]:
    """Append a wiki `!path` line for `path` and return `lines`."""
    p = os.fspath(path)
    if has_whitespace(p):
        log.error(whitespace_warning(p, "FitNesse classpath may not function correctly in wiki mode"))
    lines.append(f"!path {p}\n")
    return lines


def format_wiki_classpath(paths: Iterable[str | os.PathLike[str]]) -> str:
    """Render classpath entries as wiki markup, one `!path` line each."""
    lines: list[str] = []
    for p in paths:
        format_and_append_classpath(lines, p)
    return "".join(lines)
