from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DEFAULT_ROOT: Final[str] = "FitNesseRoot"
DEFAULT_PORT: Final[int] = 9123
MAIN_CLASS: Final[str] = "fitnesseMain.FitNesseMain"
CLASSPATH_ENV_VAR: Final[str] = "maven.classpath"

# Pause after a shutdown request to give the server a chance to exit.
SHUTDOWN_WAIT_S: Final[float] = 0.05


class ConfigError(ValueError):
    """Raised when CLI/env configuration values are invalid."""


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """
    How to start a FitNesse server.

    Notes:
    - `classpath` is passed to the runtime via `-cp`.
    - `classpath_env_value` is exported to the child under `classpath_env_var`
      so that wiki pages can refer to it. Unset means nothing is exported.
    """

    java_bin: Path
    classpath: str
    main_class: str = MAIN_CLASS
    classpath_env_var: str = CLASSPATH_ENV_VAR
    classpath_env_value: str | None = None

    def child_env(self) -> dict[str, str]:
        """Extra environment for the forked server."""
        if self.classpath_env_value is None:
            return {}
        return {self.classpath_env_var: self.classpath_env_value}


def validate_port(value: int | str) -> int:
    """Parse a TCP port and check its range."""
    try:
        port = int(str(value).strip())
    except ValueError as e:
        raise ConfigError(f"Invalid port {value!r} (expected an integer).") from e
    if not 1 <= port <= 65535:
        raise ConfigError(f"Port must be in 1..65535, got {port}.")
    return port


def resolve_java_bin(java_home: Path | None = None) -> Path:
    """
    Locate the Java runtime executable.

    Order: explicit `java_home`, then `JAVA_HOME`, then `java` on PATH.
    """
    home = java_home if java_home is not None else env_path("JAVA_HOME")
    if home is not None:
        java_bin = home / "bin" / _exe_name("java")
        if not java_bin.exists():
            raise ConfigError(f"Java runtime not found: {java_bin}")
        return java_bin

    found = shutil.which("java")
    if not found:
        raise ConfigError("Could not find java (set --java-home / JAVA_HOME or put java on PATH).")
    return Path(found)


def env_path(name: str) -> Path | None:
    """
    Read a path-like env var.

    Returns None if unset or empty.
    """
    raw = os.environ.get(name)
    if not raw:
        return None
    return Path(raw)


def _exe_name(base: str) -> str:
    """Return platform-specific executable name."""
    if os.name == "nt" and not base.lower().endswith(".exe"):
        return f"{base}.exe"
    return base
