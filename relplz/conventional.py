"""Parsing of commit messages that follow the conventional commits format."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

__all__ = ["ConventionalCommitError", "CommitType", "ConventionalCommit", "parse_commit"]


class ConventionalCommitError(ValueError):
    """Raised when a commit message is not a conventional commit."""


class CommitType(Enum):
    """Kind of change described by a conventional commit."""

    FEATURE = "feat"
    BUG_FIX = "fix"
    CHORE = "chore"
    REVERT = "revert"
    PERFORMANCES = "perf"
    DOCUMENTATION = "docs"
    STYLE = "style"
    REFACTOR = "refactor"
    TEST = "test"
    BUILD = "build"
    CI = "ci"
    CUSTOM = "custom"

    @classmethod
    def from_keyword(cls, keyword: str) -> CommitType:
        """Map a commit type keyword to its member; unknown keywords are custom."""
        return _KEYWORDS.get(keyword.lower(), cls.CUSTOM)


_KEYWORDS = {member.value: member for member in CommitType if member is not CommitType.CUSTOM}

_BREAKING_TOKENS = frozenset({"BREAKING CHANGE", "BREAKING-CHANGE"})

_HEADER_RE = re.compile(
    r"(?P<type>[A-Za-z0-9_-]+)"
    r"(?:\((?P<scope>[^()\r\n]+)\))?"
    r"(?P<breaking>!)?"
    r": (?P<summary>.*\S.*)"
)

_FOOTER_RE = re.compile(
    r"(?P<token>BREAKING CHANGE|BREAKING-CHANGE|[A-Za-z][A-Za-z0-9-]*)(?:: | #)(?P<content>.*)"
)

_PARAGRAPH_SPLIT_RE = re.compile(r"\n[ \t]*\n")


@dataclass(frozen=True)
class ConventionalCommit:
    """A commit message split into its conventional parts."""

    commit_type: CommitType
    type_name: str
    summary: str
    scope: str | None = None
    body: str | None = None
    footers: tuple[tuple[str, str], ...] = ()
    is_breaking_change: bool = False


def _parse_footers(paragraph: str) -> tuple[tuple[str, str], ...] | None:
    lines = paragraph.split("\n")
    if not _FOOTER_RE.fullmatch(lines[0]):
        return None
    footers: list[list[str]] = []
    for line in lines:
        match = _FOOTER_RE.fullmatch(line)
        if match:
            footers.append([match["token"], match["content"]])
        else:
            footers[-1][1] = f"{footers[-1][1]}\n{line}"
    return tuple((token, content.strip()) for token, content in footers)


def parse_commit(message: str) -> ConventionalCommit:
    """Parse ``message`` as a conventional commit.

    Raises ConventionalCommitError if the message does not follow the format.
    """
    lines = message.splitlines()
    if not lines:
        raise ConventionalCommitError("empty commit message")
    header = _HEADER_RE.fullmatch(lines[0])
    if header is None:
        raise ConventionalCommitError(f"not a conventional commit: {lines[0]!r}")

    rest = "\n".join(lines[1:]).strip("\n")
    paragraphs = [p.strip("\n") for p in _PARAGRAPH_SPLIT_RE.split(rest)] if rest else []
    footers: tuple[tuple[str, str], ...] = ()
    if paragraphs:
        parsed = _parse_footers(paragraphs[-1])
        if parsed is not None:
            footers = parsed
            paragraphs = paragraphs[:-1]
    body = "\n\n".join(paragraphs) or None

    breaking = header["breaking"] is not None or any(
        token in _BREAKING_TOKENS for token, _ in footers
    )
    type_name = header["type"]
    return ConventionalCommit(
        commit_type=CommitType.from_keyword(type_name),
        type_name=type_name,
        summary=header["summary"].strip(),
        scope=header["scope"],
        body=body,
        footers=footers,
        is_breaking_change=breaking,
    )