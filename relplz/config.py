"""The ``release-plz.toml`` configuration: workspace defaults and package overrides."""

from __future__ import annotations

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import tomlkit

__all__ = [
    "DEFAULT_CONFIG_FILENAME",
    "ConfigError",
    "ReleaseType",
    "SemverCheck",
    "GitReleaseConfig",
    "ReleaseConfig",
    "PackageReleaseConfig",
    "PackageUpdateConfig",
    "PackageConfig",
    "PackageSpecificConfig",
    "PackageSpecificConfigWithName",
    "UpdateConfig",
    "ReleasePrConfig",
    "CommonCmdConfig",
    "Workspace",
    "Config",
    "load_config",
]

DEFAULT_CONFIG_FILENAME = "release-plz.toml"

_log = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.-]*")
_SPECIAL_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp", "file"})


class ConfigError(Exception):
    """Raised when the configuration cannot be read or is invalid."""


class ReleaseType(Enum):
    """How a git release is marked."""

    PROD = "prod"
    """Ready for production."""
    PRE = "pre"
    """Not ready for production, i.e. a pre-release."""
    AUTO = "auto"
    """Pre-release only if the tag holds a semver pre-release."""


class SemverCheck(Enum):
    """Whether to run cargo-semver-checks."""

    YES = "yes"
    NO = "no"


def _or(value: Any, default: Any) -> Any:
    return value if value is not None else default


def _opt_bool(table: dict[str, Any], key: str) -> bool | None:
    value = table.get(key)
    if value is not None and not isinstance(value, bool):
        raise ConfigError(f"invalid type for `{key}`: expected a boolean")
    return value


def _opt_str(table: dict[str, Any], key: str) -> str | None:
    value = table.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"invalid type for `{key}`: expected a string")
    return value


def _opt_release_type(table: dict[str, Any], key: str) -> ReleaseType | None:
    value = _opt_str(table, key)
    if value is None:
        return None
    try:
        return ReleaseType(value)
    except ValueError:
        variants = ", ".join(f"`{member.value}`" for member in ReleaseType)
        raise ConfigError(
            f"unknown variant `{value}` for `{key}`, expected one of {variants}"
        ) from None


def _parse_url(text: str) -> str:
    parts = urlsplit(text.strip())
    if not parts.scheme or not _SCHEME_RE.fullmatch(parts.scheme):
        raise ConfigError(f"invalid url {text!r}: relative URL without a base")
    scheme = parts.scheme.lower()
    if scheme in _SPECIAL_SCHEMES and scheme != "file" and not parts.netloc:
        raise ConfigError(f"invalid url {text!r}: empty host")
    path = parts.path
    if scheme in _SPECIAL_SCHEMES and not path:
        path = "/"
    return urlunsplit(parts._replace(scheme=scheme, path=path))


def _opt_url(table: dict[str, Any], key: str) -> str | None:
    value = _opt_str(table, key)
    return None if value is None else _parse_url(value)


def _format_value(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    return tomlkit.item(value).as_string()


def _lines(items: list[tuple[str, Any]]) -> str:
    return "".join(f"{key} = {_format_value(value)}\n" for key, value in items if value is not None)


@dataclass(frozen=True)
class GitReleaseConfig:
    """Settings for the GitHub/Gitea/GitLab release."""

    enable: bool | None = None
    release_type: ReleaseType | None = None
    draft: bool | None = None

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> GitReleaseConfig:
        return cls(
            enable=_opt_bool(table, "git_release_enable"),
            release_type=_opt_release_type(table, "git_release_type"),
            draft=_opt_bool(table, "git_release_draft"),
        )

    def _items(self) -> list[tuple[str, Any]]:
        return [
            ("git_release_enable", self.enable),
            ("git_release_type", self.release_type),
            ("git_release_draft", self.draft),
        ]

    def merge(self, default: GitReleaseConfig) -> GitReleaseConfig:
        """Fill the unset values from ``default``."""
        return GitReleaseConfig(
            enable=_or(self.enable, default.enable),
            release_type=_or(self.release_type, default.release_type),
            draft=_or(self.draft, default.draft),
        )


@dataclass(frozen=True)
class ReleaseConfig:
    """Settings for ``cargo publish``."""

    publish: bool | None = None
    allow_dirty: bool | None = None
    no_verify: bool | None = None

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> ReleaseConfig:
        return cls(
            publish=_opt_bool(table, "publish"),
            allow_dirty=_opt_bool(table, "publish_allow_dirty"),
            no_verify=_opt_bool(table, "publish_no_verify"),
        )

    def _items(self) -> list[tuple[str, Any]]:
        return [
            ("publish", self.publish),
            ("publish_allow_dirty", self.allow_dirty),
            ("publish_no_verify", self.no_verify),
        ]

    def merge(self, default: ReleaseConfig) -> ReleaseConfig:
        """Fill the unset values from ``default``."""
        return ReleaseConfig(
            publish=_or(self.publish, default.publish),
            allow_dirty=_or(self.allow_dirty, default.allow_dirty),
            no_verify=_or(self.no_verify, default.no_verify),
        )


@dataclass(frozen=True)
class PackageReleaseConfig:
    """Options for the ``release`` command."""

    git_release: GitReleaseConfig = field(default_factory=GitReleaseConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> PackageReleaseConfig:
        return cls(
            git_release=GitReleaseConfig._from_table(table),
            release=ReleaseConfig._from_table(table),
        )

    def _items(self) -> list[tuple[str, Any]]:
        return self.git_release._items() + self.release._items()

    def merge(self, default: PackageReleaseConfig) -> PackageReleaseConfig:
        """Fill the unset values from ``default``."""
        return PackageReleaseConfig(
            git_release=self.git_release.merge(default.git_release),
            release=self.release.merge(default.release),
        )


@dataclass(frozen=True)
class PackageUpdateConfig:
    """Options for the ``update`` command that a package can override."""

    semver_check: bool | None = None
    changelog_update: bool | None = None

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> PackageUpdateConfig:
        return cls(
            semver_check=_opt_bool(table, "semver_check"),
            changelog_update=_opt_bool(table, "changelog_update"),
        )

    def _items(self) -> list[tuple[str, Any]]:
        return [("semver_check", self.semver_check), ("changelog_update", self.changelog_update)]

    def merge(self, default: PackageUpdateConfig) -> PackageUpdateConfig:
        """Fill the unset values from ``default``."""
        return PackageUpdateConfig(
            semver_check=_or(self.semver_check, default.semver_check),
            changelog_update=_or(self.changelog_update, default.changelog_update),
        )


@dataclass(frozen=True)
class PackageConfig:
    """Configuration applied to every package by default."""

    update: PackageUpdateConfig = field(default_factory=PackageUpdateConfig)
    release: PackageReleaseConfig = field(default_factory=PackageReleaseConfig)

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> PackageConfig:
        return cls(
            update=PackageUpdateConfig._from_table(table),
            release=PackageReleaseConfig._from_table(table),
        )

    def _items(self) -> list[tuple[str, Any]]:
        return self.update._items() + self.release._items()


@dataclass(frozen=True)
class PackageSpecificConfig:
    """Configuration of a single ``[[package]]``."""

    update: PackageUpdateConfig = field(default_factory=PackageUpdateConfig)
    release: PackageReleaseConfig = field(default_factory=PackageReleaseConfig)
    changelog_path: str | None = None

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> PackageSpecificConfig:
        return cls(
            update=PackageUpdateConfig._from_table(table),
            release=PackageReleaseConfig._from_table(table),
            changelog_path=_opt_str(table, "changelog_path"),
        )

    def _items(self) -> list[tuple[str, Any]]:
        return self.update._items() + self.release._items() + [("changelog_path", self.changelog_path)]

    def merge(self, default: PackageConfig) -> PackageSpecificConfig:
        """Fill the unset values from the workspace defaults."""
        return PackageSpecificConfig(
            update=self.update.merge(default.update),
            release=self.release.merge(default.release),
            changelog_path=self.changelog_path,
        )


@dataclass(frozen=True)
class PackageSpecificConfigWithName:
    """A ``[[package]]`` entry: the package name and its configuration."""

    name: str
    config: PackageSpecificConfig = field(default_factory=PackageSpecificConfig)

    @classmethod
    def _from_table(cls, table: Any) -> PackageSpecificConfigWithName:
        if not isinstance(table, dict):
            raise ConfigError("invalid type for `package` entry: expected a table")
        name = table.get("name")
        if name is None:
            raise ConfigError("missing field `name` in `package`")
        if not isinstance(name, str):
            raise ConfigError("invalid type for `name`: expected a string")
        return cls(name=name, config=PackageSpecificConfig._from_table(table))

    def _items(self) -> list[tuple[str, Any]]:
        return [("name", self.name)] + self.config._items()


@dataclass(frozen=True)
class UpdateConfig:
    """Workspace-wide options for the ``update`` command."""

    dependencies_update: bool | None = None
    changelog_config: str | None = None
    allow_dirty: bool | None = None

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> UpdateConfig:
        return cls(
            dependencies_update=_opt_bool(table, "dependencies_update"),
            changelog_config=_opt_str(table, "changelog_config"),
            allow_dirty=_opt_bool(table, "allow_dirty"),
        )

    def _items(self) -> list[tuple[str, Any]]:
        return [
            ("dependencies_update", self.dependencies_update),
            ("changelog_config", self.changelog_config),
            ("allow_dirty", self.allow_dirty),
        ]


@dataclass(frozen=True)
class ReleasePrConfig:
    """Workspace-wide options for the ``release-pr`` command."""

    pr_labels: tuple[str, ...] = ()

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> ReleasePrConfig:
        labels = table.get("pr_labels", [])
        if not isinstance(labels, list) or not all(isinstance(label, str) for label in labels):
            raise ConfigError("invalid type for `pr_labels`: expected a list of strings")
        return cls(pr_labels=tuple(labels))

    def _items(self) -> list[tuple[str, Any]]:
        return [("pr_labels", list(self.pr_labels))]


@dataclass(frozen=True)
class CommonCmdConfig:
    """Options shared among commands."""

    repo_url: str | None = None

    @classmethod
    def _from_table(cls, table: dict[str, Any]) -> CommonCmdConfig:
        return cls(repo_url=_opt_url(table, "repo_url"))

    def _items(self) -> list[tuple[str, Any]]:
        return [("repo_url", self.repo_url)]


@dataclass(frozen=True)
class Workspace:
    """The ``[workspace]`` section: global configuration."""

    update: UpdateConfig = field(default_factory=UpdateConfig)
    release_pr: ReleasePrConfig = field(default_factory=ReleasePrConfig)
    common: CommonCmdConfig = field(default_factory=CommonCmdConfig)
    packages_defaults: PackageConfig = field(default_factory=PackageConfig)

    @classmethod
    def _from_table(cls, table: Any) -> Workspace:
        if not isinstance(table, dict):
            raise ConfigError("invalid type for `workspace`: expected a table")
        return cls(
            update=UpdateConfig._from_table(table),
            release_pr=ReleasePrConfig._from_table(table),
            common=CommonCmdConfig._from_table(table),
            packages_defaults=PackageConfig._from_table(table),
        )

    def _items(self) -> list[tuple[str, Any]]:
        return (
            self.update._items()
            + self.release_pr._items()
            + self.common._items()
            + self.packages_defaults._items()
        )


@dataclass(frozen=True)
class Config:
    """The whole configuration file."""

    workspace: Workspace = field(default_factory=Workspace)
    package: tuple[PackageSpecificConfigWithName, ...] = ()

    @classmethod
    def from_toml(cls, text: str) -> Config:
        """Parse the configuration; raise ConfigError if it is invalid."""
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML: {exc}") from exc
        unknown = sorted(set(data) - {"workspace", "package"})
        if unknown:
            raise ConfigError(
                f"unknown field `{unknown[0]}`, expected `workspace` or `package`"
            )
        packages = data.get("package", [])
        if not isinstance(packages, list):
            raise ConfigError("invalid type for `package`: expected an array of tables")
        return cls(
            workspace=Workspace._from_table(data.get("workspace", {})),
            package=tuple(PackageSpecificConfigWithName._from_table(p) for p in packages),
        )

    def to_toml(self) -> str:
        """Serialize the configuration as TOML."""
        blocks = ["[workspace]\n" + _lines(self.workspace._items())]
        blocks.extend("[[package]]\n" + _lines(entry._items()) for entry in self.package)
        return "\n".join(blocks)

    def packages(self) -> dict[str, PackageSpecificConfig]:
        """Package-specific configurations by package name."""
        return {entry.name: entry.config for entry in self.package}


def load_config(path: str | os.PathLike[str] | None = None) -> Config:
    """Read the configuration file, falling back to the defaults when it is absent."""
    config_path = os.fspath(path) if path is not None else DEFAULT_CONFIG_FILENAME
    try:
        with open(config_path, encoding="utf-8") as handle:
            text = handle.read()
    except FileNotFoundError:
        _log.info("release-plz config file not found, using default configuration")
        return Config()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"can't read {config_path!r}: {exc}") from exc
    _log.info("using release-plz config file %s", config_path)
    try:
        return Config.from_toml(text)
    except ConfigError as exc:
        raise ConfigError(f"invalid config file {config_path!r}: {exc}") from exc