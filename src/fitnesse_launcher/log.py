from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def console_for_color_mode(color: str) -> Console:
    mode = color.strip().lower()
    if mode == "always":
        # Emit ANSI color codes even when stderr is not a TTY (useful for CI logs).
        return Console(stderr=True, force_terminal=True)
    if mode == "never":
        return Console(stderr=True, no_color=True)
    if mode == "auto":
        return Console(stderr=True)
    raise ValueError(f"Invalid color mode: {color!r} (expected auto|always|never)")


def configure_logging(*, color: str = "auto", verbose: bool = False) -> None:
    """Route `fitnesse_launcher` log records through Rich."""
    handler = RichHandler(
        console=console_for_color_mode(color),
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("fitnesse_launcher")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
