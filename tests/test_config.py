from __future__ import annotations

import os
from pathlib import Path

import pytest

from fitnesse_launcher.config import (
    ConfigError,
    ServerConfig,
    resolve_java_bin,
    validate_port,
)


@pytest.mark.parametrize(("value", "expected"), [(8080, 8080), ("9123", 9123), (" 1 ", 1), (65535, 65535)])
def test_validate_port(value: int | str, expected: int) -> None:
    assert validate_port(value) == expected


@pytest.mark.parametrize("value", ["", "abc", "0", "65536", "-1"])
def test_validate_port_rejects_invalid(value: str) -> None:
    with pytest.raises(ConfigError):
        validate_port(value)


def test_child_env_only_when_value_configured() -> None:
    cfg = ServerConfig(java_bin=Path("java"), classpath="a.jar")
    assert cfg.child_env() == {}

    cfg = ServerConfig(java_bin=Path("java"), classpath="a.jar", classpath_env_value="a.jar")
    assert cfg.child_env() == {"maven.classpath": "a.jar"}


def test_resolve_java_bin_from_java_home(tmp_path: Path) -> None:
    java = tmp_path / "bin" / ("java.exe" if os.name == "nt" else "java")
    java.parent.mkdir()
    java.write_text("", encoding="utf-8")
    assert resolve_java_bin(tmp_path) == java


def test_resolve_java_bin_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    java = tmp_path / "bin" / ("java.exe" if os.name == "nt" else "java")
    java.parent.mkdir()
    java.write_text("", encoding="utf-8")
    monkeypatch.setenv("JAVA_HOME", str(tmp_path))
    assert resolve_java_bin() == java


def test_resolve_java_bin_missing_runtime(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        resolve_java_bin(tmp_path)


def test_resolve_java_bin_nothing_found(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JAVA_HOME", raising=False)
    monkeypatch.setattr("fitnesse_launcher.config.shutil.which", lambda cmd: None)
    with pytest.raises(ConfigError):
        resolve_java_bin()

