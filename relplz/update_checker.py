"""Check whether a newer release of the tool is available."""

from __future__ import annotations

import json
import urllib.request

__all__ = [
    "LATEST_RELEASE_API",
    "TAG_PREFIX",
    "UpdateCheckError",
    "extract_version",
    "get_latest_version",
    "check_update",
]

LATEST_RELEASE_API = "https://api.github.com/repos/release-plz/release-plz/releases/latest"
TAG_PREFIX = "release-plz-v"
_USER_AGENT = "release-plz"


class UpdateCheckError(Exception):
    """Raised when the latest version cannot be determined."""


def extract_version(tag: str) -> str | None:
    """The version in a release tag such as ``release-plz-v0.2.37``, or None."""
    if tag.startswith(TAG_PREFIX):
        return tag[len(TAG_PREFIX):]
    return None


def get_latest_version() -> str:
    """Version of the latest published release."""
    request = urllib.request.Request(LATEST_RELEASE_API, headers={"User-Agent": _USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=30) as response:
            payload = json.load(response)
    except OSError as exc:
        raise UpdateCheckError(f"error while sending request: {exc}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise UpdateCheckError("can't parse response") from exc
    tag_name = payload.get("tag_name") if isinstance(payload, dict) else None
    if not isinstance(tag_name, str):
        raise UpdateCheckError("can't parse response")
    version = extract_version(tag_name)
    if version is None:
        raise UpdateCheckError(f"can't extract latest release-plz version from tag name {tag_name}")
    return version


def check_update(current_version: str) -> str:
    """Print whether ``current_version`` is the latest one and return the latest version."""
    try:
        latest_version = get_latest_version()
    except UpdateCheckError as exc:
        raise UpdateCheckError(f"error while checking for updates: {exc}") from exc
    if latest_version != current_version:
        print(
            f"Your release-plz version is {current_version}. "
            f"A newer version ({latest_version}) is available"
        )
    else:
        print(f"Your release-plz version ({current_version}) is up to date")
    return latest_version