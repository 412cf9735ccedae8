"""Reading of Markdown changelogs in the Keep a Changelog style."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

__all__ = [
    "ChangelogParseError",
    "ChangelogRelease",
    "ChangelogParser",
    "parse_header",
    "last_changes",
    "last_changes_from_str",
    "last_version_from_str",
    "last_release_from_str",
]

_HEADER_WITH_UNRELEASED_RE = re.compile(
    r"(?s)^(# Changelog|# CHANGELOG|# changelog)(.*)(## Unreleased|## \[Unreleased\])"
)
_HEADER_BEFORE_SECTION_RE = re.compile(r"(?s)^(# Changelog|# CHANGELOG|# changelog)(.*)(\n## )")

_HEADING_RE = re.compile(r"(#{1,6})[ \t]+(.*?)[ \t#]*")
_VERSION_RE = re.compile(
    r"\[?(?:v|Version |Release )?"
    r"(?P<version>\d+\.\d+\.\d+(?:-[\w.-]+)?(?:\+[\w.-]+)?|(?i:unreleased))"
    r"\]?(?=$|[\s(\[-])"
)
_FENCE_RE = re.compile(r"[ \t]{0,3}(```|~~~)")


class ChangelogParseError(ValueError):
    """Raised when a changelog contains no release that can be read."""


@dataclass(frozen=True)
class ChangelogRelease:
    """One release section of a changelog."""

    version: str
    title: str
    notes: str


def parse_header(changelog: str) -> str | None:
    """Return the header at the start of ``changelog``, if there is one.

    The header starts with ``# Changelog`` and ends with ``## Unreleased``
    (kept) or before the first other ``## `` heading (not kept).
    """
    match = _HEADER_WITH_UNRELEASED_RE.match(changelog)
    if match:
        return f"{match[0]}\n"
    match = _HEADER_BEFORE_SECTION_RE.match(changelog)
    if match:
        return f"{match[1]}{match[2]}"
    return None


def _trim_notes(lines: list[str]) -> str:
    return "\n".join(lines).strip("\n").rstrip()


def _parse_releases(text: str) -> list[ChangelogRelease]:
    releases: list[ChangelogRelease] = []
    release_level: int | None = None
    current: tuple[str, str] | None = None
    notes: list[str] = []
    fence: str | None = None

    def finish() -> None:
        if current is not None:
            version, title = current
            releases.append(ChangelogRelease(version, title, _trim_notes(notes)))

    for line in text.splitlines():
        fence_match = _FENCE_RE.match(line)
        if fence_match:
            if fence is None:
                fence = fence_match[1]
            elif fence_match[1] == fence:
                fence = None
        heading = None if fence is not None else _HEADING_RE.fullmatch(line)
        if heading is not None:
            level = len(heading[1])
            title = heading[2]
            version = _VERSION_RE.match(title) if level <= 2 else None
            if version is not None and release_level in (None, level):
                finish()
                release_level = level
                current = (version["version"], title)
                notes = []
                continue
            if release_level is not None and level <= release_level:
                finish()
                current = None
                notes = []
                continue
        if current is not None:
            notes.append(line)
    finish()

    if not releases:
        raise ChangelogParseError("can't parse changelog: no release note was found")
    seen: set[str] = set()
    for release in releases:
        if release.version in seen:
            raise ChangelogParseError(
                f"can't parse changelog: multiple release notes for '{release.version}'"
            )
        seen.add(release.version)
    return releases


class ChangelogParser:
    """Releases of a changelog, newest first."""

    def __init__(self, changelog_text: str) -> None:
        """Parse ``changelog_text``; raise ChangelogParseError if it holds no release."""
        self.releases: list[ChangelogRelease] = _parse_releases(changelog_text)

    def last_release(self) -> ChangelogRelease | None:
        """The newest release, skipping an ``Unreleased`` section."""
        first = self.releases[0]
        if "unreleased" in first.version.lower():
            return self.releases[1] if len(self.releases) > 1 else None
        return first


def last_changes(path: str | os.PathLike[str]) -> str | None:
    """Notes of the newest release in the changelog file at ``path``."""
    with open(path, encoding="utf-8") as handle:
        return last_changes_from_str(handle.read())


def last_changes_from_str(changelog: str) -> str | None:
    release = ChangelogParser(changelog).last_release()
    return None if release is None else release.notes


def last_version_from_str(changelog: str) -> str | None:
    release = ChangelogParser(changelog).last_release()
    return None if release is None else release.version


def last_release_from_str(changelog: str) -> ChangelogRelease | None:
    return ChangelogParser(changelog).last_release()