"""
Symlink registration against a running FitNesse.

FitNesse accepts duplicate create requests for the same link, so the
deduplication of link names here only keeps the log output clean.

See http://fitnesse.org/FitNesse.UserGuide.SymbolicLinks
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote_plus

import httpx

from .server import base_url

log = logging.getLogger(__name__)

_DRIVE_PREFIX_RE = re.compile(r"/[A-Z]:")
_SUBMIT = "Create/Replace"
_DEFAULT_TIMEOUT_S = 30.0


@dataclass(frozen=True, slots=True)
class Launch:
    """A FitNesse test or suite page to execute, e.g. `Some.Page.Name`."""

    page_name: str


def calc_link_name(launch: Launch) -> str:
    """Top-level wiki page of the launch (text before the first dot)."""
    return launch.page_name.split(".", 1)[0]


def unique_link_names(launches: Iterable[Launch]) -> list[str]:
    """Link names in first-seen order, without duplicates."""
    return list(dict.fromkeys(calc_link_name(launch) for launch in launches))


def calc_link_path(
    link_name: str, base_dir: str | os.PathLike[str], test_resource_dir: str
) -> str:
    """
    Location a link should point to: `file://<base_dir>/<test_resource_dir>/<link_name>`.

    The path is deliberately not percent-encoded; the whole value is encoded
    once when it is put into the request URL.
    """
    return link_path_for(link_name, Path(base_dir).absolute().as_posix(), test_resource_dir)


def link_path_for(link_name: str, base_dir_posix: str, test_resource_dir: str) -> str:
    """`calc_link_path` for an already absolute posix-style base dir (`C:/x` or `/x`)."""
    if not base_dir_posix.startswith("/"):
        base_dir_posix = "/" + base_dir_posix

    link_path = _DRIVE_PREFIX_RE.sub("", "file:" + base_dir_posix, count=1).replace(":", "://", 1)
    if not link_path.endswith("/"):
        link_path += "/"
    link_path += test_resource_dir
    if not link_path.endswith("/"):
        link_path += "/"
    return link_path + link_name


def build_symlink_url(port: int, link_name: str, link_path: str) -> str:
    return (
        f"{base_url(port)}/root?responder=symlink"
        f"&linkName={quote_plus(link_name)}"
        f"&linkPath={quote_plus(link_path)}"
        f"&submit={quote_plus(_SUBMIT)}"
    )


def create_symlink(
    base_dir: str | os.PathLike[str],
    test_resource_dir: str,
    port: int,
    link_name: str,
    *,
    client: httpx.Client,
) -> int:
    """
    Create or replace one symlink in the wiki root.

    Returns the response status code. The code is logged, not checked;
    transport errors propagate.
    """
    link_path = calc_link_path(link_name, base_dir, test_resource_dir)
    url = build_symlink_url(port, link_name, link_path)

    log.info("Calling %s", url)
    resp = client.get(url)
    log.info("Response code: %s", resp.status_code)
    return resp.status_code


def create_symlinks(
    base_dir: str | os.PathLike[str],
    test_resource_dir: str,
    port: int,
    launches: Iterable[Launch],
    *,
    client: httpx.Client | None = None,
) -> dict[str, int]:
    """
    Register one symlink per top-level page of `launches`.

    Returns
    -------
    dict[str, int]
        Response status code per link name.
    """
    names = unique_link_names(launches)

    if client is None:
        with httpx.Client(timeout=_DEFAULT_TIMEOUT_S, trust_env=False) as own:
            return {
                name: create_symlink(base_dir, test_resource_dir, port, name, client=own)
                for name in names
            }

    return {
        name: create_symlink(base_dir, test_resource_dir, port, name, client=client)
        for name in names
    }
