import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from relplz.cargo import (
    CargoError,
    SparseIndex,
    is_published,
    is_version_present,
    run_cargo,
    wait_until_published,
)
from relplz.versioning import Version
from relplz.workspace import Package


def make_package(name="mycrate", version="0.1.0"):
    return Package(
        name=name,
        version=Version.parse(version),
        id=name,
        manifest_path=Path(f"{name}/Cargo.toml"),
    )


class FakeIndex:
    def __init__(self, versions, published_after=0):
        self.versions = list(versions)
        self.published_after = published_after
        self.calls = 0

    def crate_versions(self, crate_name):
        self.calls += 1
        if self.calls > self.published_after:
            return self.versions
        return []


@pytest.fixture
def index_server():
    files = {}
    requested = []

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            requested.append(self.path)
            body = files.get(self.path)
            if body is None:
                self.send_response(404)
                self.end_headers()
                return
            data = body.encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def log_message(self, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"sparse+http://127.0.0.1:{server.server_address[1]}/index", files, requested
    finally:
        server.shutdown()
        server.server_close()


def index_lines(*versions):
    return "\n".join(f'{{"name": "mycrate", "vers": "{v}"}}' for v in versions) + "\n"


def test_version_present_in_list():
    assert is_version_present("0.1.0", ["0.0.9", "0.1.0"])


def test_version_absent_from_list():
    assert not is_version_present("0.2.0", ["0.0.9", "0.1.0"])
    assert not is_version_present("0.1.0", [])


def test_is_published_with_listed_version():
    assert is_published(FakeIndex(["0.0.1", "0.1.0"]), make_package()) is True


def test_is_not_published_with_other_versions():
    assert is_published(FakeIndex(["0.0.1"]), make_package()) is False


def test_sparse_index_lists_versions(index_server):
    url, files, requested = index_server
    files["/index/my/cr/mycrate"] = index_lines("0.0.1", "0.1.0")
    index = SparseIndex(url)
    assert index.crate_versions("mycrate") == ["0.0.1", "0.1.0"]
    assert requested == ["/index/my/cr/mycrate"]


def test_sparse_index_uses_lowercase_short_paths(index_server):
    url, files, requested = index_server
    files["/index/3/a/abc"] = index_lines("1.0.0")
    files["/index/1/a"] = index_lines("2.0.0")
    index = SparseIndex(url + "/")
    assert index.crate_versions("ABC") == ["1.0.0"]
    assert index.crate_versions("a") == ["2.0.0"]
    assert requested == ["/index/3/a/abc", "/index/1/a"]


def test_sparse_index_unknown_crate_has_no_versions(index_server):
    url, _, _ = index_server
    assert SparseIndex(url).crate_versions("missing") == []


def test_sparse_index_invalid_data_raises(index_server):
    url, files, _ = index_server
    files["/index/my/cr/mycrate"] = "not json\n"
    with pytest.raises(CargoError):
        SparseIndex(url).crate_versions("mycrate")


def test_is_published_against_sparse_index(index_server):
    url, files, _ = index_server
    files["/index/my/cr/mycrate"] = index_lines("0.1.0")
    index = SparseIndex(url)
    assert is_published(index, make_package(version="0.1.0"))
    assert not is_published(index, make_package(version="0.2.0"))


def test_wait_until_published_polls_until_present():
    index = FakeIndex(["0.1.0"], published_after=2)
    wait_until_published(index, make_package(), timeout=10.0, sleep_time=0.001)
    assert index.calls == 3


def test_wait_until_published_times_out():
    index = FakeIndex(["0.1.0"], published_after=10**9)
    with pytest.raises(CargoError, match="timeout while publishing mycrate"):
        wait_until_published(index, make_package(), timeout=0.0, sleep_time=0.001)
    assert index.calls >= 1


def test_run_cargo_returns_trimmed_output(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("CARGO", sys.executable)
    script = "import sys; print('  out  '); print('err1', file=sys.stderr); print('err2', file=sys.stderr)"
    stdout, stderr = run_cargo(tmp_path, ["-c", script])
    assert stdout == "out"
    assert stderr == "err1\nerr2"
    assert "err1" in capsys.readouterr().err


def test_run_cargo_runs_in_root(monkeypatch, tmp_path):
    monkeypatch.setenv("CARGO", sys.executable)
    stdout, _ = run_cargo(tmp_path, ["-c", "import os; print(os.getcwd())"])
    assert Path(stdout).resolve() == tmp_path.resolve()


def test_run_cargo_keeps_output_of_failing_command(monkeypatch, tmp_path):
    monkeypatch.setenv("CARGO", sys.executable)
    stdout, _ = run_cargo(tmp_path, ["-c", "print('partial'); raise SystemExit(3)"])
    assert stdout == "partial"


def test_run_cargo_missing_binary_raises(monkeypatch, tmp_path):
    monkeypatch.setenv("CARGO", str(tmp_path / "no-such-cargo"))
    with pytest.raises(CargoError, match="cannot run cargo"):
        run_cargo(tmp_path, ["--version"])