"""Tests for the git wrapper (subprocess is mocked)."""

import subprocess
from typing import List

import pytest

from changelens.errors import GitError
from changelens.vcs import GitClient


class _FakeGit:
    """Records git invocations and replies from a table keyed by subcommand."""

    def __init__(self, replies):
        self.replies = replies
        self.calls: List[List[str]] = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        key = cmd[1]
        if key == "ls-files" and "--error-unmatch" in cmd:
            key = "ls-files-tracked"
        code, out = self.replies.get(key, (0, ""))
        return subprocess.CompletedProcess(cmd, code, stdout=out, stderr="boom" if code else "")


@pytest.fixture
def fake_git(monkeypatch):
    def install(replies):
        fake = _FakeGit(replies)
        monkeypatch.setattr("changelens.vcs.subprocess.run", fake)
        return fake
    return install


def test_changed_files_merges_untracked(fake_git):
    fake = fake_git({
        "diff": (0, "src/app.ts\nsrc/util.ts\n"),
        "ls-files": (0, "src/new.ts\nsrc/app.ts\n"),
    })

    files = GitClient("/repo").changed_files()

    assert files == ["src/app.ts", "src/util.ts", "src/new.ts"]
    assert fake.calls[0] == ["git", "diff", "--name-only", "--relative", "--diff-filter=d", "HEAD"]


def test_changed_files_against_base(fake_git):
    fake = fake_git({"diff": (0, "a.ts\n")})

    files = GitClient("/repo").changed_files("main", include_untracked=False)

    assert files == ["a.ts"]
    assert fake.calls == [["git", "diff", "--name-only", "--relative", "--diff-filter=d", "main"]]


def test_file_diff_tracked(fake_git):
    fake = fake_git({"ls-files-tracked": (0, "src/app.ts\n"), "diff": (0, "@@ -1 +1 @@\n")})

    assert GitClient("/repo").file_diff("src/app.ts") == "@@ -1 +1 @@\n"
    assert fake.calls[-1] == ["git", "diff", "--no-color", "HEAD", "--", "src/app.ts"]


def test_file_diff_untracked_uses_no_index(fake_git):
    fake = fake_git({"ls-files-tracked": (1, ""), "diff": (1, "@@ -0,0 +1 @@\n+x\n")})

    assert GitClient("/repo").file_diff("new.ts") == "@@ -0,0 +1 @@\n+x\n"
    assert "--no-index" in fake.calls[-1]


def test_failure_raises_git_error(fake_git):
    fake_git({"diff": (128, "")})

    with pytest.raises(GitError) as exc_info:
        GitClient("/repo").changed_files()
    assert "boom" in str(exc_info.value)


def test_missing_git_executable(monkeypatch):
    def missing(cmd, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr("changelens.vcs.subprocess.run", missing)

    with pytest.raises(GitError):
        GitClient("/repo").changed_files()
