from pathlib import Path

import pytest

from relplz.git import GitError, Repo, changed_files, git_in_dir


def _init_repo(directory: Path) -> Repo:
    git_in_dir(directory, ["init"])
    git_in_dir(directory, ["config", "user.name", "author_name"])
    git_in_dir(directory, ["config", "user.email", "author@example.com"])
    git_in_dir(directory, ["config", "commit.gpgsign", "false"])
    git_in_dir(directory, ["config", "tag.gpgsign", "false"])
    (directory / "README.md").write_text("# my awesome project")
    git_in_dir(directory, ["add", "."])
    git_in_dir(directory, ["commit", "-m", "add README"])
    return Repo(directory)


@pytest.fixture
def repo_dir(tmp_path):
    return tmp_path.resolve()


@pytest.fixture
def repo(repo_dir):
    return _init_repo(repo_dir)


def test_inexistent_previous_commit_detected(repo, repo_dir):
    with pytest.raises(GitError, match="not enough commits"):
        repo.checkout_previous_commit_at_path(repo_dir / "file1.txt")


def test_previous_commit_is_retrieved(repo, repo_dir):
    file1 = repo_dir / "file1.txt"
    file2 = repo_dir / "file2.txt"
    file2.write_text("Hello, file2!-1")
    repo.add_all_and_commit("file2-1")
    file1.write_text("Hello, file1!")
    repo.add_all_and_commit("file1")
    file2.write_text("Hello, file2!-2")
    repo.add_all_and_commit("file2-2")
    repo.checkout_previous_commit_at_path(file2)
    assert repo.current_commit_message() == "file2-1"


def test_current_commit_is_retrieved(repo, repo_dir):
    commit_message = """feat: my feature

        message

        footer: small note"""
    (repo_dir / "file1.txt").write_text("Hello, file1!")
    repo.add_all_and_commit(commit_message)
    assert repo.current_commit_message() == commit_message


def test_clean_project_is_recognized(repo):
    repo.is_clean()
    assert repo.changes_except_typechanges() == []


def test_dirty_project_is_recognized(repo, repo_dir):
    (repo_dir / "file1.txt").write_text("Hello, file1!")
    with pytest.raises(GitError, match="uncommitted changes"):
        repo.is_clean()


def test_untracked_file_is_listed_as_change(repo, repo_dir):
    (repo_dir / "file1.txt").write_text("Hello, file1!")
    assert repo.changes_except_typechanges() == ["file1.txt"]


def test_changes_files_except_typechanges_are_detected():
    git_status_output = "T CHANGELOG.md\n M README.md\nA  crates\nD  crates/git_cmd/CHANGELOG.md\n"
    assert changed_files(git_status_output) == [
        "README.md",
        "crates",
        "crates/git_cmd/CHANGELOG.md",
    ]


def test_existing_tag_is_recognized(repo, repo_dir):
    (repo_dir / "file1.txt").write_text("Hello, file1!")
    repo.add_all_and_commit("file1")
    repo.tag("v1.0.0")
    assert repo.tag_exists("v1.0.0") is True


def test_non_existing_tag_is_recognized(repo, repo_dir):
    (repo_dir / "file1.txt").write_text("Hello, file1!")
    repo.add_all_and_commit("file1")
    repo.tag("v1.0.0")
    assert repo.tag_exists("v2.0.0") is False


def test_tag_commit_matches_current_hash(repo):
    repo.tag("v0.1.0")
    assert repo.get_tag_commit("v0.1.0") == repo.current_commit_hash()
    assert repo.get_tag_commit("missing-tag") is None


def test_is_ancestor(repo, repo_dir):
    first = repo.current_commit_hash()
    (repo_dir / "file1.txt").write_text("Hello, file1!")
    repo.add_all_and_commit("file1")
    second = repo.current_commit_hash()
    assert repo.is_ancestor(first, second) is True
    assert repo.is_ancestor(second, first) is False


def test_repo_without_upstream_uses_origin(repo):
    assert repo.original_remote == "origin"
    assert repo.original_branch == git_in_dir(repo.directory, ["rev-parse", "--abbrev-ref", "HEAD"])


def test_checkout_new_branch_and_back(repo, repo_dir):
    original = repo.original_branch
    repo.checkout_new_branch("feature")
    assert repo.git(["rev-parse", "--abbrev-ref", "HEAD"]) == "feature"
    repo.checkout_head()
    assert repo.git(["rev-parse", "--abbrev-ref", "HEAD"]) == original


def test_add_and_commit(repo, repo_dir):
    (repo_dir / "a.txt").write_text("a")
    repo.add(["a.txt"])
    repo.commit("add a")
    assert repo.current_commit_message() == "add a"


def test_repo_without_commits_is_rejected(repo_dir):
    git_in_dir(repo_dir, ["init"])
    with pytest.raises(GitError):
        Repo(repo_dir)


def test_failing_git_command_reports_error(repo_dir):
    with pytest.raises(GitError, match="error while running git with args"):
        git_in_dir(repo_dir, ["definitely-not-a-git-command"])