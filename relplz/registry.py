"""Lookup of cargo registry index URLs from cargo configuration files."""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path

__all__ = ["CRATES_IO_INDEX", "CRATES_IO_REGISTRY", "RegistryError", "registry_url", "cargo_home"]

CRATES_IO_INDEX = "https://github.com/rust-lang/crates.io-index"
CRATES_IO_REGISTRY = "crates-io"

_URL_RE = re.compile(r"(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*):(?P<rest>\S*)")
_SPECIAL_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp"})


class RegistryError(Exception):
    """Raised when the registry URL cannot be determined."""


@dataclass(frozen=True)
class _Source:
    registry: str | None = None
    replace_with: str | None = None


def _invalid_config() -> RegistryError:
    return RegistryError("Invalid cargo config")


def _optional_str(table: dict, key: str) -> str | None:
    value = table.get(key)
    if value is not None and not isinstance(value, str):
        raise _invalid_config()
    return value


def _tables(config: dict, key: str) -> list[tuple[str, dict]]:
    section = config.get(key, {})
    if not isinstance(section, dict) or not all(isinstance(v, dict) for v in section.values()):
        raise _invalid_config()
    return list(section.items())


def _read_config(registries: dict[str, _Source], path: Path) -> None:
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise RegistryError(f"cannot read cargo config {path}") from exc
    try:
        config = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise _invalid_config() from exc
    for name, entry in _tables(config, "registries"):
        registries.setdefault(name, _Source(registry=_optional_str(entry, "index")))
    for name, entry in _tables(config, "source"):
        registries.setdefault(
            name,
            _Source(
                registry=_optional_str(entry, "registry"),
                replace_with=_optional_str(entry, "replace-with"),
            ),
        )


def _config_file(cargo_dir: Path) -> Path | None:
    for name in ("config", "config.toml"):
        candidate = cargo_dir / name
        if candidate.is_file():
            return candidate
    return None


def _validated_url(url: str | None) -> str:
    match = _URL_RE.fullmatch(url.strip()) if url is not None else None
    if match is None:
        raise _invalid_config()
    scheme = match["scheme"].lower()
    if scheme in _SPECIAL_SCHEMES and not match["rest"].lstrip("/").split("/", 1)[0]:
        raise _invalid_config()
    return match.group(0)


def cargo_home() -> Path:
    """The cargo home directory: ``$CARGO_HOME`` or ``~/.cargo``."""
    if "CARGO_HOME" in os.environ:
        return Path(os.environ["CARGO_HOME"])
    try:
        return Path.home() / ".cargo"
    except RuntimeError as exc:
        raise RegistryError("Failed to read home directory") from exc


def registry_url(manifest_path: str | os.PathLike[str], registry: str | None = None) -> str:
    """Find the index URL of ``registry`` (crates.io when None).

    Cargo config files are read from the manifest directory upwards and then
    from cargo home; the nearest definition wins. Source replacements are
    followed to their end.
    """
    registries: dict[str, _Source] = {}
    work_dir = Path(manifest_path).parent
    for directory in (work_dir, *work_dir.parents):
        config_path = _config_file(directory / ".cargo")
        if config_path is not None:
            _read_config(registries, config_path)
    default_config = _config_file(cargo_home())
    if default_config is not None:
        _read_config(registries, default_config)

    if registry is None or registry == CRATES_IO_INDEX:
        source = registries.pop(CRATES_IO_REGISTRY, _Source())
        if source.registry is None:
            source = replace(source, registry=CRATES_IO_INDEX)
    else:
        try:
            source = registries.pop(registry)
        except KeyError:
            raise RegistryError(f"The registry '{registry}' could not be found") from None

    while source.replace_with is not None:
        replace_with = source.replace_with
        try:
            source = registries.pop(replace_with)
        except KeyError:
            raise RegistryError(f"The source '{replace_with}' could not be found") from None
        if replace_with == CRATES_IO_INDEX and source.registry is None:
            source = replace(source, registry=CRATES_IO_INDEX)

    return _validated_url(source.registry)