"""Generation of Keep a Changelog style release notes from commit messages."""

from __future__ import annotations

import copy
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timezone

from relplz.changelog_parser import ChangelogParseError, last_version_from_str, parse_header
from relplz.conventional import ConventionalCommitError, parse_commit

__all__ = ["CHANGELOG_HEADER", "CHANGELOG_FILENAME", "Changelog", "ChangelogBuilder"]

CHANGELOG_HEADER = """# Changelog
All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).

## [Unreleased]
"""

CHANGELOG_FILENAME = "CHANGELOG.md"

# Groups follow the Keep a Changelog categories; the first matching pattern wins.
_COMMIT_PARSERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile("^feat"), "added"),
    (re.compile("^changed"), "changed"),
    (re.compile("^deprecated"), "deprecated"),
    (re.compile("^removed"), "removed"),
    (re.compile("^fix"), "fixed"),
    (re.compile("^security"), "security"),
    (re.compile(".*"), "other"),
)


@dataclass(frozen=True)
class _Commit:
    message: str
    group: str
    scope: str | None = None
    breaking: bool = False

    def render(self) -> str:
        breaking = "[**breaking**] " if self.breaking else ""
        if self.scope:
            return f"- *({self.scope})* {breaking}{self.message}\n"
        return f"- {breaking}{self.message}\n"


def _process_commit(message: str) -> _Commit | None:
    """Classify a commit message; None if no parser accepts it."""
    group = next((name for pattern, name in _COMMIT_PARSERS if pattern.search(message)), None)
    if group is None:
        return None
    try:
        conventional = parse_commit(message)
    except ConventionalCommitError:
        return _Commit(message=message, group=group)
    return _Commit(
        message=conventional.summary,
        group=group,
        scope=conventional.scope,
        breaking=conventional.is_breaking_change,
    )


def _upper_first(text: str) -> str:
    return text[:1].upper() + text[1:]


@dataclass(frozen=True)
class Changelog:
    """Notes of a single release, ready to be written into a changelog."""

    version: str
    commits: tuple[_Commit, ...]
    released_at: datetime
    release_link: str | None = None

    def _render_release(self) -> str:
        if not self.commits:
            return ""
        link = f"({self.release_link})" if self.release_link is not None else ""
        text = f"\n## [{self.version.lstrip('v')}]{link} - {self.released_at:%Y-%m-%d}\n"
        groups: dict[str, list[_Commit]] = {}
        for commit in self.commits:
            groups.setdefault(commit.group, []).append(commit)
        for group in sorted(groups):
            text += f"\n### {_upper_first(group)}\n"
            text += "".join(commit.render() for commit in groups[group])
        return text

    def generate(self) -> str:
        """Return a complete changelog holding only this release."""
        return CHANGELOG_HEADER + self._render_release()

    def prepend(self, old_changelog: str) -> str:
        """Add this release on top of ``old_changelog``.

        The old changelog is returned unchanged if its newest release already
        has this version. Its header, if recognised, is kept.
        """
        try:
            last_version = last_version_from_str(old_changelog)
        except ChangelogParseError:
            last_version = None
        if last_version is not None and last_version == self.version:
            return old_changelog
        header = parse_header(old_changelog) or CHANGELOG_HEADER
        remainder = old_changelog.replace(header, "", 1)
        return header + self._render_release() + remainder


class ChangelogBuilder:
    """Collects what is needed to build a Changelog."""

    def __init__(self, commits: Iterable[str], version: str) -> None:
        self._commits = tuple(commits)
        self._version = version
        self._release_date: date | None = None
        self._release_link: str | None = None

    def with_release_date(self, release_date: date) -> ChangelogBuilder:
        """Return a builder whose release is dated ``release_date`` (UTC)."""
        builder = copy.copy(self)
        builder._release_date = release_date
        return builder

    def with_release_link(self, release_link: str) -> ChangelogBuilder:
        """Return a builder whose release heading links to ``release_link``."""
        builder = copy.copy(self)
        builder._release_link = release_link
        return builder

    def _released_at(self) -> datetime:
        if self._release_date is None:
            return datetime.now(timezone.utc)
        day = date(self._release_date.year, self._release_date.month, self._release_date.day)
        return datetime.combine(day, time(), tzinfo=timezone.utc)

    def build(self) -> Changelog:
        """Classify the commits and return the release notes."""
        commits = tuple(
            commit
            for commit in (_process_commit(message) for message in self._commits)
            if commit is not None
        )
        return Changelog(
            version=self._version,
            commits=commits,
            released_at=self._released_at(),
            release_link=self._release_link,
        )