"""Semantic versions and the next version implied by a list of commits."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum
from functools import total_ordering

from relplz.conventional import CommitType, ConventionalCommit, ConventionalCommitError, parse_commit

__all__ = ["Version", "VersionIncrement"]

_VERSION_RE = re.compile(
    r"(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)"
    r"(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?"
)
_IDENTIFIER_RE = re.compile(r"[0-9A-Za-z-]+")
_U32_MAX = 0xFFFFFFFF


def _validate_identifiers(text: str, what: str, *, strict_numbers: bool) -> None:
    if not text:
        return
    for identifier in text.split("."):
        if not _IDENTIFIER_RE.fullmatch(identifier):
            raise ValueError(f"invalid {what} {text!r}")
        if strict_numbers and identifier.isdigit() and len(identifier) > 1 and identifier[0] == "0":
            raise ValueError(f"invalid leading zero in {what} {text!r}")


def _identifier_key(identifier: str) -> tuple[int, int, str]:
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier)


def _increment_last_identifier(release: str) -> str:
    left, dot, right = release.rpartition(".")
    if dot and right.isascii() and right.isdigit() and int(right) <= _U32_MAX:
        return f"{left}.{int(right) + 1}"
    return f"{release}.1"


@total_ordering
@dataclass(frozen=True)
class Version:
    """A semantic version: ``major.minor.patch[-pre][+build]``."""

    major: int
    minor: int
    patch: int
    pre: str = ""
    build: str = ""

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        _validate_identifiers(self.pre, "pre-release", strict_numbers=True)
        _validate_identifiers(self.build, "build metadata", strict_numbers=False)

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version string; raise ValueError if it is not valid semver."""
        match = _VERSION_RE.fullmatch(text)
        if match is None:
            raise ValueError(f"invalid version {text!r}")
        major, minor, patch, pre, build = match.groups()
        return cls(int(major), int(minor), int(patch), pre or "", build or "")

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += f"-{self.pre}"
        if self.build:
            text += f"+{self.build}"
        return text

    def _sort_key(self) -> tuple:
        pre_key = (1, ()) if not self.pre else (0, tuple(map(_identifier_key, self.pre.split("."))))
        build_key = () if not self.build else tuple(map(_identifier_key, self.build.split(".")))
        return (self.major, self.minor, self.patch, pre_key, build_key)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def next(self, commits: Iterable[str]) -> Version:
        """Return the version that follows this one given the new commits.

        No commits leave the version unchanged.
        """
        increment = VersionIncrement.from_commits(self, commits)
        return self if increment is None else increment.bump(self)

    def increment_major(self) -> Version:
        return replace(self, major=self.major + 1, minor=0, patch=0, pre="")

    def increment_minor(self) -> Version:
        return replace(self, minor=self.minor + 1, patch=0, pre="")

    def increment_patch(self) -> Version:
        return replace(self, patch=self.patch + 1, pre="")

    def increment_prerelease(self) -> Version:
        """Increment the last numeric pre-release identifier, or append ``.1``."""
        return replace(self, pre=_increment_last_identifier(self.pre))


class VersionIncrement(Enum):
    """Which part of a version to increment."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PRERELEASE = "prerelease"

    @classmethod
    def from_commits(
        cls, current_version: Version, commits: Iterable[str]
    ) -> VersionIncrement | None:
        """Decide the increment for ``commits``; None when there are no commits."""
        messages = list(commits)
        if not messages:
            return None
        if current_version.pre:
            return cls.PRERELEASE
        parsed = []
        for message in messages:
            try:
                parsed.append(parse_commit(message))
            except ConventionalCommitError:
                continue
        return cls._from_conventional_commits(current_version, parsed)

    @classmethod
    def breaking(cls, current_version: Version) -> VersionIncrement:
        """The increment that accounts for a breaking change."""
        if current_version.pre:
            return cls.PRERELEASE
        if current_version.major == 0 and current_version.minor == 0:
            return cls.PATCH
        if current_version.major == 0:
            return cls.MINOR
        return cls.MAJOR

    @classmethod
    def _from_conventional_commits(
        cls, current: Version, commits: list[ConventionalCommit]
    ) -> VersionIncrement:
        has_feature = any(c.commit_type is CommitType.FEATURE for c in commits)
        has_breaking = any(c.is_breaking_change for c in commits)
        if current.major != 0 and has_breaking:
            return cls.MAJOR
        if (current.major != 0 and has_feature) or (
            current.major == 0 and current.minor != 0 and has_breaking
        ):
            return cls.MINOR
        return cls.PATCH

    def bump(self, version: Version) -> Version:
        """Apply this increment to ``version``."""
        match self:
            case VersionIncrement.MAJOR:
                return version.increment_major()
            case VersionIncrement.MINOR:
                return version.increment_minor()
            case VersionIncrement.PATCH:
                return version.increment_patch()
            case VersionIncrement.PRERELEASE:
                return version.increment_prerelease()