"""
Command formatting helpers.

Provides:
- quote_for_display / format_command: readable one-liners for logs.
- log_invocation: log a command invocation (extra env, argv).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence

log = logging.getLogger(__name__)


class ExecError(RuntimeError):
    """Raised when a subprocess cannot be started."""


def quote_for_display(s: str) -> str:
    """Quote string for display (not shell-safe, for logs only)."""
    if not any(c.isspace() or c in {'"', "\\"} for c in s):
        return s
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def format_command(argv: Sequence[str | os.PathLike[str]]) -> str:
    """Format argv as readable one-liner."""
    return " ".join(quote_for_display(os.fspath(a)) for a in argv)


def log_invocation(
    *,
    label: str,
    argv: Sequence[str | os.PathLike[str]],
    extra_env: Mapping[str, str] | None = None,
) -> None:
    """Log command invocation details."""
    if extra_env:
        pairs = " ".join(f"{k}={quote_for_display(v)}" for k, v in extra_env.items())
        log.info("%s: env %s", label, pairs)
    log.info("%s: %s", label, format_command(argv))
