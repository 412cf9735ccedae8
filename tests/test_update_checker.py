import io
import json
import urllib.error
from unittest import mock

import pytest

from relplz.update_checker import (
    UpdateCheckError,
    check_update,
    extract_version,
    get_latest_version,
)


def fake_response(payload):
    data = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    response = mock.MagicMock()
    response.__enter__.return_value = io.BytesIO(data)
    response.__exit__.return_value = False
    return response


def test_version_is_extracted():
    assert extract_version("release-plz-v0.2.37") == "0.2.37"


def test_tag_without_prefix_has_no_version():
    assert extract_version("v0.2.37") is None


def test_latest_version_is_read_from_tag():
    with mock.patch("urllib.request.urlopen") as urlopen:
        urlopen.return_value = fake_response({"tag_name": "release-plz-v0.2.37"})
        assert get_latest_version() == "0.2.37"
        request = urlopen.call_args.args[0]
        assert request.get_header("User-agent") == "release-plz"


def test_unexpected_tag_raises():
    with mock.patch("urllib.request.urlopen") as urlopen:
        urlopen.return_value = fake_response({"tag_name": "other-v1.0.0"})
        with pytest.raises(UpdateCheckError, match="other-v1.0.0"):
            get_latest_version()


def test_invalid_response_raises():
    with mock.patch("urllib.request.urlopen") as urlopen:
        urlopen.return_value = fake_response(b"not json")
        with pytest.raises(UpdateCheckError, match="can't parse response"):
            get_latest_version()


def test_up_to_date_version_is_reported(capsys):
    with mock.patch("urllib.request.urlopen") as urlopen:
        urlopen.return_value = fake_response({"tag_name": "release-plz-v0.2.37"})
        assert check_update("0.2.37") == "0.2.37"
    assert "Your release-plz version (0.2.37) is up to date" in capsys.readouterr().out


def test_newer_version_is_reported(capsys):
    with mock.patch("urllib.request.urlopen") as urlopen:
        urlopen.return_value = fake_response({"tag_name": "release-plz-v0.2.37"})
        assert check_update("0.2.36") == "0.2.37"
    out = capsys.readouterr().out
    assert "Your release-plz version is 0.2.36." in out
    assert "A newer version (0.2.37) is available" in out


def test_network_failure_raises():
    with mock.patch("urllib.request.urlopen") as urlopen:
        urlopen.side_effect = urllib.error.URLError("unreachable")
        with pytest.raises(UpdateCheckError, match="error while checking for updates"):
            check_update("0.2.37")