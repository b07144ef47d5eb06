from __future__ import annotations

import contextlib
import subprocess
from pathlib import Path
from typing import Annotated

import httpx
import typer

from .config import (
    CLASSPATH_ENV_VAR,
    DEFAULT_PORT,
    DEFAULT_ROOT,
    ConfigError,
    ServerConfig,
    resolve_java_bin,
)
from .exec import ExecError
from .log import configure_logging
from .server import (
    JavaMainEntryPoint,
    ServerError,
    fork_server,
    launch_server_in_process,
    shutdown_server,
    wait_for_server,
)
from .symlinks import Launch, create_symlinks
from .wiki import format_wiki_classpath

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=False,
    help="Start, stop and wire up a FitNesse server from a build pipeline.",
)

PortOpt = Annotated[
    int,
    typer.Option("--port", "-p", help="FitNesse HTTP port.", envvar="FITNESSE_PORT", min=1, max=65535),
]
WorkingDirOpt = Annotated[
    str,
    typer.Option("--working-dir", "-d", help="Directory holding the wiki root.", envvar="FITNESSE_WORKING_DIR"),
]
RootOpt = Annotated[
    str,
    typer.Option("--root", "-r", help="Wiki root page directory name.", envvar="FITNESSE_ROOT"),
]
LogDirOpt = Annotated[
    str | None,
    typer.Option("--log-dir", "-l", help="FitNesse request log directory.", envvar="FITNESSE_LOG_DIR"),
]
ClasspathOpt = Annotated[
    str,
    typer.Option("--classpath", help="Classpath holding FitNesse and the fixtures.", envvar="FITNESSE_CLASSPATH"),
]
JavaHomeOpt = Annotated[
    Path | None,
    typer.Option(
        "--java-home",
        help="Java installation to use (defaults to JAVA_HOME, then java on PATH).",
        envvar="JAVA_HOME",
        dir_okay=True,
        file_okay=False,
    ),
]
ClasspathEnvVarOpt = Annotated[
    str,
    typer.Option("--classpath-env-var", help="Environment variable the classpath is exported under."),
]
BaseDirOpt = Annotated[
    Path,
    typer.Option("--basedir", help="Project base directory (defaults to cwd).", file_okay=False),
]
TestResourceDirOpt = Annotated[
    str,
    typer.Option("--test-resource-dir", help="Test resource directory, relative to --basedir."),
]

_DEFAULT_TEST_RESOURCE_DIR = "src/test/fitnesse"


def _server_config(*, classpath: str, java_home: Path | None, classpath_env_var: str) -> ServerConfig:
    return ServerConfig(
        java_bin=resolve_java_bin(java_home),
        classpath=classpath,
        classpath_env_var=classpath_env_var,
        classpath_env_value=classpath,
    )


def _kill_and_reap(proc: subprocess.Popen[bytes]) -> None:
    try:
        if proc.poll() is None:
            proc.kill()
    except OSError:
        pass

    with contextlib.suppress(Exception):
        proc.wait(timeout=2.0)


def _fail(e: Exception, *, code: int) -> typer.Exit:
    label = "CONFIG ERROR" if isinstance(e, ConfigError) else "ERROR"
    typer.secho(f"{label}: {e}", fg=typer.colors.RED, err=True)
    return typer.Exit(code=code)


@app.callback()
def _global(
    color: Annotated[
        str,
        typer.Option(
            "--color",
            help="Color output mode for logs (auto|always|never).",
            envvar="FITNESSE_LAUNCHER_COLOR",
        ),
    ] = "auto",
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging.")] = False,
) -> None:
    try:
        configure_logging(color=color, verbose=verbose)
    except ValueError as e:
        raise _fail(ConfigError(str(e)), code=2) from e


@app.command()
def start(
    classpath: ClasspathOpt,
    port: PortOpt = DEFAULT_PORT,
    working_dir: WorkingDirOpt = ".",
    root: RootOpt = DEFAULT_ROOT,
    log_dir: LogDirOpt = None,
    java_home: JavaHomeOpt = None,
    classpath_env_var: ClasspathEnvVarOpt = CLASSPATH_ENV_VAR,
    wait_timeout: Annotated[
        float | None,
        typer.Option("--wait-timeout", help="Seconds to wait for the server to answer HTTP.", min=0.1),
    ] = None,
    link: Annotated[
        list[str] | None,
        typer.Option("--link", help="Page name to register a symlink for (repeatable)."),
    ] = None,
    basedir: BaseDirOpt = Path("."),
    test_resource_dir: TestResourceDirOpt = _DEFAULT_TEST_RESOURCE_DIR,
) -> None:
    """Fork a FitNesse server and print its pid."""
    try:
        cfg = _server_config(classpath=classpath, java_home=java_home, classpath_env_var=classpath_env_var)
        proc = fork_server(port, working_dir, root, log_dir, cfg)
    except ConfigError as e:
        raise _fail(e, code=2) from e
    except ExecError as e:
        raise _fail(e, code=1) from e

    try:
        if wait_timeout is not None:
            wait_for_server(port, timeout_s=wait_timeout, proc=proc)
        if link:
            create_symlinks(basedir, test_resource_dir, port, [Launch(page_name=p) for p in link])
    except (ServerError, httpx.HTTPError) as e:
        _kill_and_reap(proc)
        raise _fail(e, code=1) from e

    typer.echo(str(proc.pid))


@app.command()
def run(
    classpath: ClasspathOpt,
    port: PortOpt = DEFAULT_PORT,
    working_dir: WorkingDirOpt = ".",
    root: RootOpt = DEFAULT_ROOT,
    log_dir: LogDirOpt = None,
    java_home: JavaHomeOpt = None,
    classpath_env_var: ClasspathEnvVarOpt = CLASSPATH_ENV_VAR,
) -> None:
    """Run FitNesse in the foreground and exit with its exit code."""
    try:
        cfg = _server_config(classpath=classpath, java_home=java_home, classpath_env_var=classpath_env_var)
    except ConfigError as e:
        raise _fail(e, code=2) from e

    launch_server_in_process(port, working_dir, root, log_dir, entry_point=JavaMainEntryPoint(cfg))


@app.command()
def stop(
    port: PortOpt = DEFAULT_PORT,
    user: Annotated[str | None, typer.Option("--user", "-u", help="Shutdown user.", envvar="FITNESSE_USER")] = None,
    password: Annotated[
        str | None, typer.Option("--password", "-w", help="Shutdown password.", envvar="FITNESSE_PASSWORD")
    ] = None,
    wait_timeout: Annotated[
        float | None,
        typer.Option("--wait-timeout", help="Also wait until the port stops answering.", min=0.0),
    ] = None,
) -> None:
    """Shut down a running FitNesse (no-op if it is not running)."""
    if (user is None) != (password is None):
        raise _fail(ConfigError("--user and --password must be given together"), code=2)
    credentials = (user, password) if user is not None and password is not None else None
    shutdown_server(port, credentials=credentials, wait_timeout_s=wait_timeout)


@app.command()
def symlink(
    pages: Annotated[list[str], typer.Argument(help="Page names, e.g. Suite.SubSuite.TestPage.")],
    port: PortOpt = DEFAULT_PORT,
    basedir: BaseDirOpt = Path("."),
    test_resource_dir: TestResourceDirOpt = _DEFAULT_TEST_RESOURCE_DIR,
) -> None:
    """Register symlinks for the top-level pages of PAGES on a running server."""
    try:
        codes = create_symlinks(basedir, test_resource_dir, port, [Launch(page_name=p) for p in pages])
    except httpx.HTTPError as e:
        raise _fail(e, code=1) from e

    for name, code in codes.items():
        typer.echo(f"{name} {code}")


@app.command()
def classpath(
    paths: Annotated[list[str], typer.Argument(help="Classpath entries.")],
) -> None:
    """Print classpath entries as wiki `!path` lines."""
    typer.echo(format_wiki_classpath(paths), nl=False)


def main() -> None:
    """
    Programmatic entrypoint used by `project.scripts`.
    """
    app(prog_name="fitnesse-launcher")


if __name__ == "__main__":
    main()
