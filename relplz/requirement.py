"""Rewriting of dependency version requirements to point at a new version."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum

from relplz.versioning import Version

__all__ = ["UnsupportedRequirementError", "upgrade_requirement"]

_MAX_COMPARATORS = 32
_U64_MAX = 0xFFFFFFFFFFFFFFFF
_WILDCARDS = frozenset("*xX")

_COMPARATOR_RE = re.compile(
    r"(?P<op>>=|<=|>|<|=|~|\^)? *(?P<major>[0-9]+)"
    r"(?:\.(?P<minor>[0-9]+|[*xX])"
    r"(?:\.(?P<patch>[0-9]+|[*xX])"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?)?)?"
)
_IDENTIFIER_RE = re.compile(r"[0-9A-Za-z-]+")


class UnsupportedRequirementError(Exception):
    """Raised when a requirement uses an operator that cannot be upgraded."""


class _Op(Enum):
    EXACT = "="
    GREATER = ">"
    GREATER_EQ = ">="
    LESS = "<"
    LESS_EQ = "<="
    TILDE = "~"
    CARET = "^"
    WILDCARD = ""


@dataclass(frozen=True)
class _Comparator:
    op: _Op
    major: int
    minor: int | None
    patch: int | None
    pre: str = ""

    def __str__(self) -> str:
        text = f"{self.op.value}{self.major}"
        if self.minor is not None:
            text += f".{self.minor}"
            if self.patch is not None:
                text += f".{self.patch}"
                if self.pre:
                    text += f"-{self.pre}"
            elif self.op is _Op.WILDCARD:
                text += ".*"
        elif self.op is _Op.WILDCARD:
            text += ".*"
        return text


def _number(text: str, req: str) -> int:
    if len(text) > 1 and text.startswith("0"):
        raise ValueError(f"invalid leading zero in version requirement {req!r}")
    value = int(text)
    if value > _U64_MAX:
        raise ValueError(f"value out of range in version requirement {req!r}")
    return value


def _check_identifiers(text: str, req: str, *, strict_numbers: bool) -> None:
    for identifier in text.split("."):
        if not _IDENTIFIER_RE.fullmatch(identifier):
            raise ValueError(f"empty identifier in version requirement {req!r}")
        if strict_numbers and identifier.isdigit() and len(identifier) > 1 and identifier[0] == "0":
            raise ValueError(f"invalid leading zero in version requirement {req!r}")


def _parse_comparator(piece: str, req: str) -> _Comparator:
    match = _COMPARATOR_RE.fullmatch(piece)
    if match is None:
        raise ValueError(f"invalid version requirement {req!r}")
    explicit_op = match["op"]
    op = _Op(explicit_op) if explicit_op else _Op.CARET
    minor_text, patch_text = match["minor"], match["patch"]
    minor_wild = minor_text is not None and minor_text in _WILDCARDS
    patch_wild = patch_text is not None and patch_text in _WILDCARDS

    if minor_wild and patch_text is not None and not patch_wild:
        raise ValueError(f"unexpected character after wildcard in {req!r}")
    if (match["pre"] is not None or match["build"] is not None) and patch_wild:
        raise ValueError(f"unexpected character after wildcard in {req!r}")
    if (minor_wild or patch_wild) and not explicit_op:
        op = _Op.WILDCARD

    pre = match["pre"] or ""
    if pre:
        _check_identifiers(pre, req, strict_numbers=True)
    if match["build"]:
        _check_identifiers(match["build"], req, strict_numbers=False)

    return _Comparator(
        op=op,
        major=_number(match["major"], req),
        minor=None if minor_text is None or minor_wild else _number(minor_text, req),
        patch=None if patch_text is None or patch_wild else _number(patch_text, req),
        pre=pre,
    )


def _parse_requirement(req: str) -> list[_Comparator]:
    text = req.lstrip(" ")
    if text[:1] in _WILDCARDS and text:
        rest = text[1:].lstrip(" ")
        if not rest:
            return []
        raise ValueError(f"wildcard must be the only comparator in {req!r}")
    pieces = [piece.strip(" ") for piece in text.split(",")]
    if len(pieces) > _MAX_COMPARATORS:
        raise ValueError(f"too many comparators in version requirement {req!r}")
    return [_parse_comparator(piece, req) for piece in pieces]


def _set_comparator(comparator: _Comparator, version: Version) -> _Comparator:
    match comparator.op:
        case _Op.WILDCARD | _Op.EXACT | _Op.TILDE | _Op.CARET:
            updated = replace(
                comparator,
                major=version.major,
                minor=None if comparator.minor is None else version.minor,
                patch=None if comparator.patch is None else version.patch,
            )
            if comparator.op is _Op.WILDCARD:
                return updated
            return replace(updated, pre=version.pre)
        case _:
            raise UnsupportedRequirementError(
                f"Support for modifying {comparator} is currently unsupported"
            )


def upgrade_requirement(req: str, version: Version) -> str | None:
    """Rewrite ``req`` so that it points at ``version``.

    Returns the new requirement text, or None when nothing changes.
    Raises ValueError for a malformed requirement and
    UnsupportedRequirementError for operators such as ``>=`` or ``<``.
    """
    comparators = _parse_requirement(req)
    if not comparators:
        return None
    new_text = ", ".join(str(_set_comparator(c, version)) for c in comparators)
    if new_text.startswith("^") and not req.startswith("^"):
        new_text = new_text[1:]
    return None if new_text == req else new_text