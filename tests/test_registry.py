from pathlib import Path

import pytest

from relplz.registry import CRATES_IO_INDEX, RegistryError, cargo_home, registry_url

TEST_REGISTRY_CONFIG = """
[registries]
test-registry = { index = "http://127.0.0.1:35504/git" }

[net]
git-fetch-with-cli = true
"""


@pytest.fixture
def project(tmp_path, monkeypatch):
    home = tmp_path / "cargo-home"
    home.mkdir()
    monkeypatch.setenv("CARGO_HOME", str(home))
    project_dir = tmp_path / "workspace" / "project"
    project_dir.mkdir(parents=True)
    return project_dir


def _write_config(directory: Path, content: str, name: str = "config.toml") -> None:
    cargo_dir = directory / ".cargo"
    cargo_dir.mkdir(exist_ok=True)
    (cargo_dir / name).write_text(content, encoding="utf-8")


def test_default_registry_is_crates_io(project):
    assert registry_url(project / "Cargo.toml") == CRATES_IO_INDEX


def test_crates_io_index_url_selects_crates_io(project):
    assert registry_url(project / "Cargo.toml", CRATES_IO_INDEX) == CRATES_IO_INDEX


def test_named_registry_is_found(project):
    _write_config(project, TEST_REGISTRY_CONFIG)
    url = registry_url(project / "Cargo.toml", "test-registry")
    assert url == "http://127.0.0.1:35504/git"


def test_missing_registry_is_an_error(project):
    with pytest.raises(RegistryError, match="could not be found"):
        registry_url(project / "Cargo.toml", "test-registry")


def test_nearest_config_wins(project):
    _write_config(project, '[registries]\nmine = { index = "https://near.example.com/index" }\n')
    _write_config(
        project.parent, '[registries]\nmine = { index = "https://far.example.com/index" }\n'
    )
    assert registry_url(project / "Cargo.toml", "mine") == "https://near.example.com/index"


def test_parent_config_is_read(project):
    _write_config(project.parent, TEST_REGISTRY_CONFIG)
    url = registry_url(project / "Cargo.toml", "test-registry")
    assert url == "http://127.0.0.1:35504/git"


def test_config_is_preferred_over_config_toml(project):
    _write_config(project, '[registries]\nr = { index = "https://a.example.com/i" }\n', "config")
    _write_config(project, '[registries]\nr = { index = "https://b.example.com/i" }\n')
    assert registry_url(project / "Cargo.toml", "r") == "https://a.example.com/i"


def test_cargo_home_config_is_read(project):
    _write_config(cargo_home().parent, "")  # unrelated directory, must not matter
    (cargo_home() / "config.toml").write_text(TEST_REGISTRY_CONFIG, encoding="utf-8")
    url = registry_url(project / "Cargo.toml", "test-registry")
    assert url == "http://127.0.0.1:35504/git"


def test_crates_io_replacement_is_followed(project):
    _write_config(
        project,
        '[source.crates-io]\nreplace-with = "mirror"\n\n'
        '[source.mirror]\nregistry = "sparse+https://mirror.example.com/index/"\n',
    )
    assert registry_url(project / "Cargo.toml") == "sparse+https://mirror.example.com/index/"


def test_missing_replacement_source_is_an_error(project):
    _write_config(project, '[source.crates-io]\nreplace-with = "nowhere"\n')
    with pytest.raises(RegistryError, match="The source 'nowhere' could not be found"):
        registry_url(project / "Cargo.toml")


def test_registry_without_index_is_invalid(project):
    _write_config(project, "[registries.empty]\n")
    with pytest.raises(RegistryError, match="Invalid cargo config"):
        registry_url(project / "Cargo.toml", "empty")


def test_invalid_toml_is_an_error(project):
    _write_config(project, "[registries\n")
    with pytest.raises(RegistryError, match="Invalid cargo config"):
        registry_url(project / "Cargo.toml")


def test_wrongly_typed_index_is_an_error(project):
    _write_config(project, "[registries.bad]\nindex = 3\n")
    with pytest.raises(RegistryError, match="Invalid cargo config"):
        registry_url(project / "Cargo.toml", "bad")


def test_relative_index_is_not_a_url(project):
    _write_config(project, '[registries]\nrel = { index = "some/relative/path" }\n')
    with pytest.raises(RegistryError, match="Invalid cargo config"):
        registry_url(project / "Cargo.toml", "rel")


def test_cargo_home_uses_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("CARGO_HOME", str(tmp_path / "custom"))
    assert cargo_home() == tmp_path / "custom"


def test_cargo_home_defaults_to_home_directory(tmp_path, monkeypatch):
    monkeypatch.delenv("CARGO_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    assert cargo_home() == tmp_path / ".cargo"