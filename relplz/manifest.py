"""Reading and editing of cargo manifests (``Cargo.toml``)."""

from __future__ import annotations

import os
from collections.abc import Iterator, MutableMapping
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, ClassVar

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import Array, InlineTable
from tomlkit.toml_document import TOMLDocument

from relplz.versioning import Version

__all__ = [
    "MANIFEST_FILENAME",
    "ManifestError",
    "DepKind",
    "DepTable",
    "Manifest",
    "LocalManifest",
    "find",
    "find_manifest_path",
]

MANIFEST_FILENAME = "Cargo.toml"


class ManifestError(Exception):
    """Raised when a manifest cannot be found, read, parsed or written."""


class DepKind(Enum):
    """Kind of dependency."""

    NORMAL = "normal"
    DEVELOPMENT = "development"
    BUILD = "build"


_KIND_TABLES = {
    DepKind.NORMAL: "dependencies",
    DepKind.DEVELOPMENT: "dev-dependencies",
    DepKind.BUILD: "build-dependencies",
}


@dataclass(frozen=True)
class DepTable:
    """A dependency table: its kind and, optionally, its target platform."""

    kind: DepKind = DepKind.NORMAL
    target: str | None = None

    KINDS: ClassVar[tuple[DepTable, ...]]

    def kind_table(self) -> str:
        """Name of the manifest table holding this kind of dependency."""
        return _KIND_TABLES[self.kind]


DepTable.KINDS = tuple(DepTable(kind) for kind in DepKind)

_KIND_TABLE_NAMES = frozenset(table.kind_table() for table in DepTable.KINDS)


class _FeatureStatus(IntEnum):
    NONE = 0
    DEP_FEATURE = 1
    FEATURE = 2


def _table_like(item: Any) -> bool:
    return isinstance(item, MutableMapping)


def _standard_table(item: Any) -> bool:
    return isinstance(item, MutableMapping) and not isinstance(item, InlineTable)


def _plain(item: Any) -> Any:
    unwrap = getattr(item, "unwrap", None)
    return unwrap() if callable(unwrap) else item


def _child_table(container: MutableMapping, key: str) -> MutableMapping:
    existing = container.get(key)
    if existing is None:
        container[key] = tomlkit.table()
        return container[key]
    if not _table_like(existing):
        raise ManifestError(f"`{key}` is not a table")
    return existing


@dataclass
class Manifest:
    """A cargo manifest held as an editable TOML document."""

    data: TOMLDocument

    @classmethod
    def parse(cls, text: str) -> Manifest:
        """Parse manifest text; raise ManifestError if it is not valid TOML."""
        try:
            return cls(tomlkit.parse(text))
        except (TOMLKitError, ValueError) as exc:
            raise ManifestError(f"Manifest not valid TOML: {exc}") from exc

    def __str__(self) -> str:
        return tomlkit.dumps(self.data)

    def get_sections(self) -> list[tuple[DepTable, MutableMapping]]:
        """All existing tables that may hold dependencies, with their kind and target."""
        sections: list[tuple[DepTable, MutableMapping]] = []
        target = self.data.get("target")
        for table in DepTable.KINDS:
            name = table.kind_table()
            section = self.data.get(name)
            if _table_like(section):
                sections.append((table, section))
            if not _table_like(target):
                continue
            for target_name, target_table in target.items():
                if not _table_like(target_table):
                    continue
                dependencies = target_table.get(name)
                if _table_like(dependencies):
                    sections.append((DepTable(table.kind, str(target_name)), dependencies))
        return sections


@dataclass
class LocalManifest(Manifest):
    """A cargo manifest stored in a file."""

    path: Path

    @classmethod
    def find(cls, path: str | os.PathLike[str] | None = None) -> LocalManifest:
        """Load the manifest at ``path``, or search for one from it (or the cwd) upwards."""
        try:
            manifest_path = find(path).resolve(strict=True)
        except OSError as exc:
            raise ManifestError(f"cannot canonicalize manifest path: {exc}") from exc
        return cls.load(manifest_path)

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> LocalManifest:
        """Load the manifest at the absolute ``path``."""
        path = Path(path)
        if not path.is_absolute():
            raise ManifestError(f"can only edit absolute paths, got {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ManifestError("Failed to read manifest contents") from exc
        try:
            manifest = Manifest.parse(text)
        except ManifestError as exc:
            raise ManifestError(f"Unable to parse Cargo.toml: {exc}") from exc
        return cls(data=manifest.data, path=path)

    def write(self) -> None:
        """Write the document back to its file."""
        try:
            self.path.write_text(str(self), encoding="utf-8")
        except OSError as exc:
            raise ManifestError("Failed to write updated Cargo.toml") from exc

    def dependency_tables(self) -> Iterator[MutableMapping]:
        """Every editable dependency table, wherever it lives in the manifest."""
        for key, value in list(self.data.items()):
            if key in _KIND_TABLE_NAMES:
                if _table_like(value):
                    yield value
            elif key == "workspace":
                if _table_like(value):
                    dependencies = value.get("dependencies")
                    if _table_like(dependencies):
                        yield dependencies
            elif key == "target" and _table_like(value):
                for target_table in value.values():
                    if not _table_like(target_table):
                        continue
                    for inner_key, inner in target_table.items():
                        if inner_key in _KIND_TABLE_NAMES and _table_like(inner):
                            yield inner

    def workspace_dependency_table(self) -> MutableMapping | None:
        """The ``[workspace.dependencies]`` table, if present."""
        workspace = self.data.get("workspace")
        if not _table_like(workspace):
            return None
        dependencies = workspace.get("dependencies")
        return dependencies if _table_like(dependencies) else None

    def set_package_version(self, version: Version | str) -> None:
        """Override the package version."""
        _child_table(self.data, "package")["version"] = str(version)

    def version_is_inherited(self) -> bool:
        """True if the package takes its version from the workspace."""
        package = self.data.get("package")
        if not _table_like(package):
            return False
        version = package.get("version")
        if not _table_like(version):
            return False
        inherited = _plain(version.get("workspace"))
        return inherited if isinstance(inherited, bool) else False

    def get_workspace_version(self) -> Version | None:
        """The ``workspace.package.version``, if present and valid."""
        workspace = self.data.get("workspace")
        if not _table_like(workspace):
            return None
        package = workspace.get("package")
        if not _table_like(package):
            return None
        version = package.get("version")
        if not isinstance(version, str):
            return None
        try:
            return Version.parse(str(version))
        except ValueError:
            return None

    def set_workspace_version(self, version: Version | str) -> None:
        """Override the workspace version."""
        workspace = _child_table(self.data, "workspace")
        _child_table(workspace, "package")["version"] = str(version)

    def gc_dep(self, dep_key: str) -> None:
        """Remove feature activations of ``dep_key`` that no longer make sense."""
        status = self._dep_feature(dep_key)
        if status is _FeatureStatus.FEATURE:
            return
        features = self.data.get("features")
        if not _standard_table(features):
            return
        for activations in features.values():
            if isinstance(activations, Array):
                _remove_feature_activation(activations, dep_key, status)

    def _dep_feature(self, dep_key: str) -> _FeatureStatus:
        status = _FeatureStatus.NONE
        for _, table in self.get_sections():
            if not _standard_table(table):
                continue
            dep_item = table.get(dep_key)
            if dep_item is None:
                continue
            optional = _plain(dep_item.get("optional")) if _table_like(dep_item) else None
            if optional is True:
                return _FeatureStatus.FEATURE
            status = _FeatureStatus.DEP_FEATURE
        return status


def _remove_feature_activation(activations: Array, dep: str, status: _FeatureStatus) -> None:
    prefix = f"{dep}/"

    def obsolete(activation: Any) -> bool:
        if not isinstance(activation, str):
            return False
        if status is _FeatureStatus.NONE:
            return activation == dep or activation.startswith(prefix)
        if status is _FeatureStatus.DEP_FEATURE:
            return activation == dep
        return False

    doomed = [idx for idx, activation in enumerate(activations) if obsolete(activation)]
    for idx in reversed(doomed):
        del activations[idx]


def find(specified: str | os.PathLike[str] | None = None) -> Path:
    """Return ``specified`` if it is a file; otherwise search upwards from it (or the cwd)."""
    if specified is None:
        try:
            start = Path.cwd()
        except OSError as exc:
            raise ManifestError("Failed to get current directory") from exc
        return find_manifest_path(start)
    path = Path(specified)
    try:
        is_file = path.stat().st_mode is not None and path.is_file()
    except OSError as exc:
        raise ManifestError("Failed to get cargo file metadata") from exc
    return path if is_file else find_manifest_path(path)


def find_manifest_path(directory: str | os.PathLike[str]) -> Path:
    """Search for ``Cargo.toml`` in ``directory`` and its ancestors."""
    directory = Path(directory)
    for candidate_dir in (directory, *directory.parents):
        manifest = candidate_dir / MANIFEST_FILENAME
        if manifest.exists():
            return manifest
    raise ManifestError(f"Unable to find Cargo.toml for {directory}")