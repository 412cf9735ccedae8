"""Workspace members as reported by ``cargo metadata``."""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from relplz.versioning import Version

__all__ = ["WorkspaceError", "DependencyKind", "Dependency", "Package", "workspace_members"]


class WorkspaceError(Exception):
    """Raised when the workspace metadata cannot be obtained or understood."""


class DependencyKind(Enum):
    """Kind of dependency as reported by cargo metadata."""

    NORMAL = "normal"
    DEVELOPMENT = "dev"
    BUILD = "build"

    @classmethod
    def from_metadata(cls, value: str | None) -> DependencyKind:
        """Map the metadata ``kind`` field (null for normal) to a member."""
        return cls.NORMAL if value is None else cls(value)


@dataclass(frozen=True)
class Dependency:
    """A dependency of a package."""

    name: str
    req: str = "*"
    kind: DependencyKind = DependencyKind.NORMAL
    optional: bool = False
    uses_default_features: bool = True
    features: tuple[str, ...] = ()
    path: Path | None = None

    @classmethod
    def from_metadata(cls, data: dict[str, Any]) -> Dependency:
        """Build a dependency from its cargo metadata JSON object."""
        try:
            path = data.get("path")
            return cls(
                name=data["name"],
                req=data["req"],
                kind=DependencyKind.from_metadata(data.get("kind")),
                optional=bool(data.get("optional", False)),
                uses_default_features=bool(data.get("uses_default_features", True)),
                features=tuple(data.get("features", ())),
                path=None if path is None else Path(path),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise WorkspaceError(f"invalid dependency metadata: {exc}") from exc


@dataclass(frozen=True)
class Package:
    """A package of the workspace."""

    name: str
    version: Version
    id: str
    manifest_path: Path
    dependencies: tuple[Dependency, ...] = ()
    features: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_metadata(cls, data: dict[str, Any]) -> Package:
        """Build a package from its cargo metadata JSON object."""
        try:
            return cls(
                name=data["name"],
                version=Version.parse(data["version"]),
                id=data["id"],
                manifest_path=Path(data["manifest_path"]),
                dependencies=tuple(
                    Dependency.from_metadata(dep) for dep in data.get("dependencies", ())
                ),
                features={k: list(v) for k, v in data.get("features", {}).items()},
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise WorkspaceError(f"invalid package metadata: {exc}") from exc


def _canonicalize(path: Path) -> Path:
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError):
        return path


def _cargo_metadata(manifest_path: str | os.PathLike[str] | None) -> dict[str, Any]:
    command = [os.environ.get("CARGO", "cargo"), "metadata", "--format-version", "1", "--no-deps"]
    if manifest_path is not None:
        command += ["--manifest-path", os.fspath(manifest_path)]
    try:
        completed = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise WorkspaceError(f"Invalid manifest: cannot run cargo: {exc}") from exc
    if completed.returncode != 0:
        raise WorkspaceError(f"Invalid manifest: {completed.stderr.strip()}")
    try:
        result = json.loads(completed.stdout)
    except json.JSONDecodeError as exc:
        raise WorkspaceError("Invalid manifest: cannot parse cargo metadata") from exc
    if not isinstance(result, dict):
        raise WorkspaceError("Invalid manifest: unexpected cargo metadata")
    return result


def workspace_members(manifest_path: str | os.PathLike[str] | None = None) -> list[Package]:
    """The packages that belong to the workspace, with canonical paths."""
    result = _cargo_metadata(manifest_path)
    members = set(result.get("workspace_members", ()))
    packages = []
    for data in result.get("packages", ()):
        if data.get("id") not in members:
            continue
        package = Package.from_metadata(data)
        dependencies = tuple(
            dep if dep.path is None else replace(dep, path=_canonicalize(dep.path))
            for dep in package.dependencies
        )
        packages.append(
            replace(
                package,
                manifest_path=_canonicalize(package.manifest_path),
                dependencies=dependencies,
            )
        )
    return packages