"""
FitNesse server lifecycle management.

Provides:
- fork_server: start FitNesse as a child process (does not wait for readiness).
- launch_server_in_process: run FitNesse in the foreground and exit with its code.
- shutdown_server: stop a running FitNesse over its shutdown responder.
- wait_for_server: poll until a forked server answers HTTP.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
import traceback
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import httpx

from .config import SHUTDOWN_WAIT_S, ConfigError, ServerConfig, validate_port
from .exec import ExecError, log_invocation

log = logging.getLogger(__name__)

EntryPoint = Callable[[Sequence[str]], int | None]

_PROBE_TIMEOUT_S = 2.0
_POLL_INTERVAL_S = 0.05

# Flags understood by the FitNesse argument parser; True means the flag takes a value.
_SERVER_FLAGS: dict[str, bool] = {
    "-p": True,
    "-d": True,
    "-r": True,
    "-l": True,
    "-e": True,
    "-o": False,
    "-v": False,
}


class ServerError(RuntimeError):
    """Raised when the server cannot start or does not become reachable."""


@dataclass(frozen=True, slots=True)
class ServerArguments:
    """Validated FitNesse command line arguments."""

    port: int
    working_dir: str | None = None
    root: str | None = None
    log_dir: str | None = None
    days_till_version_expiration: int | None = None
    omit_updates: bool = False
    verbose: bool = False


def base_url(port: int) -> str:
    return f"http://localhost:{port}"


def build_command_line(port: int | str, config: ServerConfig) -> list[str]:
    """Command line used to fork the server: `<java> -cp <classpath> <main> -p <port>`."""
    return [
        str(config.java_bin),
        "-cp",
        config.classpath,
        config.main_class,
        "-p",
        str(port),
    ]


def build_server_arguments(
    port: int | str, working_dir: str, root: str, log_dir: str | None
) -> list[str]:
    """Arguments handed to the FitNesse entry point when run in the foreground."""
    args = ["-e", "0", "-o", "-p", str(port), "-d", working_dir, "-r", root]
    if log_dir is not None and log_dir.strip() != "":
        args.extend(["-l", log_dir])
    return args


def parse_server_arguments(argv: Sequence[str]) -> ServerArguments:
    """
    Validate an argument list the way the FitNesse entry point would.

    Raises
    ------
    ConfigError
        On unknown flags, missing values, stray tokens or a bad port/day count.
    """
    values: dict[str, str] = {}
    switches: set[str] = set()

    it = iter(argv)
    for token in it:
        takes_value = _SERVER_FLAGS.get(token)
        if takes_value is None:
            raise ConfigError(f"Unexpected server argument: {token!r}")
        if not takes_value:
            switches.add(token)
            continue
        value = next(it, None)
        if value is None or value in _SERVER_FLAGS:
            raise ConfigError(f"Missing value for server argument {token}")
        values[token] = value

    if "-p" not in values:
        raise ConfigError("Missing server port (-p)")

    days: int | None = None
    if "-e" in values:
        try:
            days = int(values["-e"])
        except ValueError as e:
            raise ConfigError(f"Invalid value for -e: {values['-e']!r}") from e

    return ServerArguments(
        port=validate_port(values["-p"]),
        working_dir=values.get("-d"),
        root=values.get("-r"),
        log_dir=values.get("-l"),
        days_till_version_expiration=days,
        omit_updates="-o" in switches,
        verbose="-v" in switches,
    )


def fork_server(
    port: int | str,
    working_dir: str,
    root: str,
    log_dir: str | None,
    config: ServerConfig,
) -> subprocess.Popen[bytes]:
    """
    Start FitNesse as a child process.

    The child inherits this process's environment plus the configured classpath
    variable. Readiness is not awaited; use `wait_for_server`.

    Raises
    ------
    ExecError
        If the runtime cannot be executed.
    """
    argv = build_command_line(port, config)
    extra_env = config.child_env()

    env = dict(os.environ)
    env.update(extra_env)

    log_invocation(label="fitnesse", argv=argv, extra_env=extra_env)
    try:
        proc = subprocess.Popen(argv, env=env, stdin=subprocess.DEVNULL)
    except OSError as e:
        raise ExecError(f"Could not start FitNesse ({argv[0]}): {e}") from e

    log.info(
        "FitNesse process started in: %s with root of: %s on port: %s", working_dir, root, port
    )
    if log_dir:
        log.debug("FitNesse log directory: %s", log_dir)
    return proc


class JavaMainEntryPoint:
    """Runs the FitNesse main class in the foreground and returns its exit code."""

    def __init__(self, config: ServerConfig) -> None:
        self._config = config

    def __call__(self, args: Sequence[str]) -> int | None:
        argv = [str(self._config.java_bin), "-cp", self._config.classpath, self._config.main_class]
        argv.extend(args)
        extra_env = self._config.child_env()
        env = dict(os.environ)
        env.update(extra_env)
        log_invocation(label="fitnesse", argv=argv, extra_env=extra_env)
        return subprocess.run(argv, env=env, check=False).returncode


def launch_server_in_process(
    port: int | str,
    working_dir: str,
    root: str,
    log_dir: str | None,
    *,
    entry_point: EntryPoint,
) -> None:
    """
    Run FitNesse in the foreground, then exit the current process.

    Invalid arguments exit with 1. A failing entry point prints its traceback
    and exits with 1. Otherwise the entry point's exit code is used, unless it
    returned None (the server keeps running on its own threads).
    """
    args = build_server_arguments(port, working_dir, root, log_dir)
    try:
        parse_server_arguments(args)
    except ConfigError as e:
        log.error("Invalid FitNesse arguments: %s", e)
        sys.exit(1)

    exit_code: int | None
    try:
        exit_code = entry_point(args)
    except Exception:
        traceback.print_exc(file=sys.stdout)
        exit_code = 1

    if exit_code is not None:
        sys.exit(exit_code)


def shutdown_server(
    port: int | str,
    *,
    credentials: tuple[str, str] | None = None,
    wait_timeout_s: float | None = None,
    client: httpx.Client | None = None,
) -> None:
    """
    Ask a running FitNesse to shut down.

    A refused connection means the server is already stopped and is not an
    error. Other failures are logged and swallowed. Always pauses briefly
    afterwards; with `wait_timeout_s` it also polls until the port stops
    answering (or the timeout elapses).
    """
    url = f"{base_url(int(port))}/?responder=shutdown"
    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=_PROBE_TIMEOUT_S, trust_env=False)

    try:
        try:
            resp = client.get(url, auth=credentials)
            log.debug("Shutdown response code: %s", resp.status_code)
        except httpx.ConnectError:
            log.info("FitNesse already not running.")
        except Exception as e:
            log.error("FitNesse shutdown failed: %s", e)

        time.sleep(SHUTDOWN_WAIT_S)

        if wait_timeout_s is not None:
            deadline = time.monotonic() + wait_timeout_s
            while is_server_reachable(int(port), client=client):
                if time.monotonic() > deadline:
                    log.warning(
                        "FitNesse still answering on port %s after %.1fs", port, wait_timeout_s
                    )
                    break
                time.sleep(_POLL_INTERVAL_S)
    finally:
        if owns_client:
            client.close()


def is_server_reachable(port: int, *, client: httpx.Client | None = None) -> bool:
    """True if anything answers HTTP on the port (any status code)."""
    url = f"{base_url(port)}/"
    try:
        if client is None:
            httpx.get(url, timeout=_PROBE_TIMEOUT_S, trust_env=False)
        else:
            client.get(url)
    except httpx.TransportError:
        return False
    return True


def wait_for_server(
    port: int,
    *,
    timeout_s: float,
    proc: subprocess.Popen[bytes] | None = None,
    client: httpx.Client | None = None,
) -> None:
    """
    Wait until the server answers HTTP.

    Raises
    ------
    ServerError
        If the forked process exits early or the timeout elapses.
    """
    if timeout_s <= 0:
        raise ValueError("timeout_s must be > 0")

    started_at = time.monotonic()
    deadline = started_at + timeout_s
    while True:
        if is_server_reachable(port, client=client):
            log.info("FitNesse is up: %s", base_url(port))
            return

        if proc is not None:
            rc = proc.poll()
            if rc is not None:
                raise ServerError(
                    "FitNesse exited early:\n"
                    f"  returncode: {rc}\n"
                    f"  elapsed_s: {time.monotonic() - started_at:.3f}\n"
                )

        if time.monotonic() > deadline:
            raise ServerError(
                f"timed out waiting for FitNesse on port {port}:\n"
                f"  elapsed_s: {time.monotonic() - started_at:.3f}\n"
            )

        time.sleep(_POLL_INTERVAL_S)
