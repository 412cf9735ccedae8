"""Running cargo and checking whether a package version reached its registry."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import threading
import time
import urllib.error
import urllib.request
from collections.abc import Iterable, Sequence
from typing import Protocol

from relplz.workspace import Package

__all__ = [
    "CargoError",
    "SparseIndex",
    "run_cargo",
    "is_version_present",
    "is_published",
    "wait_until_published",
]

_log = logging.getLogger(__name__)

_MISSING_CRATE_STATUSES = frozenset({404, 410, 451})


class CargoError(Exception):
    """Raised when cargo cannot be run or the registry cannot be queried."""


class _Index(Protocol):
    def crate_versions(self, crate_name: str) -> list[str]: ...


def _crate_path(name: str) -> str:
    """Path of a crate's file inside an index, as laid out by cargo."""
    lower = name.lower()
    match len(lower):
        case 0:
            raise CargoError("empty crate name")
        case 1:
            return f"1/{lower}"
        case 2:
            return f"2/{lower}"
        case 3:
            return f"3/{lower[0]}/{lower}"
        case _:
            return f"{lower[:2]}/{lower[2:4]}/{lower}"


def _parse_index_entries(body: bytes, crate_name: str) -> list[str]:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CargoError(f"invalid index data for crate {crate_name}") from exc
    versions = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
            versions.append(str(entry["vers"]))
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise CargoError(f"invalid index entry for crate {crate_name}") from exc
    return versions


class SparseIndex:
    """A cargo registry index served over HTTP (the ``sparse+`` protocol)."""

    def __init__(self, url: str) -> None:
        base = url.removeprefix("sparse+")
        if not base.endswith("/"):
            base += "/"
        self.url = base

    def crate_versions(self, crate_name: str) -> list[str]:
        """Versions of ``crate_name`` listed by the index; empty if the crate is unknown."""
        request = urllib.request.Request(
            self.url + _crate_path(crate_name), headers={"User-Agent": "relplz"}
        )
        try:
            with urllib.request.urlopen(request, timeout=30) as response:
                body = response.read()
        except urllib.error.HTTPError as exc:
            if exc.code in _MISSING_CRATE_STATUSES:
                return []
            raise CargoError(
                f"unexpected status {exc.code} while fetching crate {crate_name}"
            ) from exc
        except OSError as exc:
            raise CargoError(f"cannot fetch index data for crate {crate_name}: {exc}") from exc
        return _parse_index_entries(body, crate_name)


def run_cargo(root: str | os.PathLike[str], args: Sequence[str]) -> tuple[str, str]:
    """Run cargo in ``root`` and return its trimmed standard output and error.

    Standard error is echoed line by line while cargo runs. The cargo binary
    is taken from ``$CARGO`` when set.
    """
    cargo = os.environ.get("CARGO", "cargo")
    _log.debug("cargo %s", " ".join(args))
    try:
        process = subprocess.Popen(
            [cargo, *args],
            cwd=os.fspath(root),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise CargoError(f"cannot run cargo: {exc}") from exc

    stdout_chunks: list[bytes] = []
    reader = threading.Thread(
        target=lambda: stdout_chunks.append(process.stdout.read()), daemon=True
    )
    reader.start()

    stderr_lines: list[str] = []
    try:
        with process.stderr:
            for raw in process.stderr:
                try:
                    line = raw.decode("utf-8").rstrip("\r\n")
                except UnicodeDecodeError as exc:
                    raise CargoError("cargo wrote invalid UTF-8 to stderr") from exc
                print(line, file=sys.stderr)
                stderr_lines.append(line)
    finally:
        reader.join()
        process.stdout.close()
        process.wait()

    try:
        stdout = b"".join(stdout_chunks).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CargoError("cargo wrote invalid UTF-8 to stdout") from exc
    stderr = "\n".join(stderr_lines)
    _log.debug("cargo stderr: %s", stderr)
    _log.debug("cargo stdout: %s", stdout)
    return stdout.strip(), stderr.strip()


def is_version_present(version: str, versions: Iterable[str]) -> bool:
    """True if ``version`` is among ``versions``."""
    return any(candidate == version for candidate in versions)


def is_published(index: _Index, package: Package) -> bool:
    """True if the package's current version is listed by the index."""
    return is_version_present(str(package.version), index.crate_versions(package.name))


def wait_until_published(
    index: _Index,
    package: Package,
    timeout: float = 300.0,
    sleep_time: float = 2.0,
) -> None:
    """Poll the index until the package version appears.

    Raises CargoError once ``timeout`` seconds have passed without it.
    """
    start = time.monotonic()
    logged = False
    while True:
        if is_published(index, package):
            return
        if timeout < time.monotonic() - start:
            raise CargoError(f"timeout while publishing {package.name}")
        if not logged:
            _log.info("waiting for the package %s to be published...", package.name)
            logged = True
        time.sleep(sleep_time)