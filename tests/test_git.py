import subprocess
from unittest import mock

import pytest

from cometixline.config import InputData
from cometixline.segments.git import GitSegment, GitStatus


def _input(current_dir="/work/repo"):
    return InputData.from_dict(
        {
            "model": {"id": "m", "display_name": "M"},
            "workspace": {"current_dir": current_dir},
            "transcript_path": "/nonexistent/t.jsonl",
        }
    )


def _fake_git(responses):
    """Answer git invocations from a table keyed by the arguments after the lock flag."""

    def run(cmd, cwd=None, capture_output=False, **kwargs):
        key = tuple(cmd[2:])
        code, out = responses.get(key, (1, b""))
        return subprocess.CompletedProcess(cmd, code, stdout=out, stderr=b"")

    return run


def _repo(**overrides):
    table = {
        ("rev-parse", "--git-dir"): (0, b".git\n"),
        ("branch", "--show-current"): (0, b"main\n"),
        ("status", "--porcelain"): (0, b""),
        ("rev-list", "--count", "@{u}..HEAD"): (0, b"0\n"),
        ("rev-list", "--count", "HEAD..@{u}"): (0, b"0\n"),
        ("rev-parse", "--short=7", "HEAD"): (0, b"abc1234\n"),
    }
    table.update(overrides)
    return table


def _collect(table, show_sha=False):
    with mock.patch("cometixline.segments.git.subprocess.run", _fake_git(table)):
        return GitSegment(show_sha=show_sha).collect(_input())


def test_not_a_repository_gives_nothing():
    table = _repo(**{})
    table[("rev-parse", "--git-dir")] = (128, b"")
    assert _collect(table) is None


def test_missing_git_binary_gives_nothing():
    with mock.patch(
        "cometixline.segments.git.subprocess.run", side_effect=FileNotFoundError("git")
    ):
        assert GitSegment().collect(_input()) is None


def test_clean_repository():
    data = _collect(_repo())
    assert data.primary == "main"
    assert data.secondary == "✓"
    assert data.metadata["status"] == GitStatus.CLEAN.value
    assert data.metadata["ahead"] == "0"
    assert data.metadata["behind"] == "0"
    assert "sha" not in data.metadata


def test_dirty_with_ahead_and_behind():
    table = _repo()
    table[("status", "--porcelain")] = (0, b" M file.txt\n")
    table[("rev-list", "--count", "@{u}..HEAD")] = (0, b"2\n")
    table[("rev-list", "--count", "HEAD..@{u}")] = (0, b"1\n")
    data = _collect(table)
    assert data.secondary == "● ↑2 ↓1"
    assert data.metadata["status"] == "Dirty"
    assert data.metadata["ahead"] == "2"
    assert data.metadata["behind"] == "1"


@pytest.mark.parametrize("line", [b"UU a.txt\n", b"AA b.txt\n", b"DD c.txt\n"])
def test_conflicts_detected(line):
    table = _repo()
    table[("status", "--porcelain")] = (0, line)
    data = _collect(table)
    assert data.secondary == "⚠"
    assert data.metadata["status"] == "Conflicts"


def test_failed_status_counts_as_clean():
    table = _repo()
    table[("status", "--porcelain")] = (128, b"")
    assert _collect(table).metadata["status"] == "Clean"


def test_branch_falls_back_to_symbolic_ref():
    table = _repo()
    table[("branch", "--show-current")] = (0, b"\n")
    table[("symbolic-ref", "--short", "HEAD")] = (0, b"feature\n")
    assert _collect(table).primary == "feature"


def test_detached_when_no_branch_known():
    table = _repo()
    table[("branch", "--show-current")] = (0, b"\n")
    table[("symbolic-ref", "--short", "HEAD")] = (128, b"")
    data = _collect(table)
    assert data.primary == "detached"
    assert data.metadata["branch"] == "detached"


def test_unparseable_count_is_zero():
    table = _repo()
    table[("rev-list", "--count", "@{u}..HEAD")] = (0, b"many\n")
    assert _collect(table).metadata["ahead"] == "0"


def test_sha_shown_only_when_requested():
    assert "abc1234" not in _collect(_repo()).secondary
    data = _collect(_repo(), show_sha=True)
    assert data.secondary == "✓ abc1234"
    assert data.metadata["sha"] == "abc1234"


def test_empty_sha_is_omitted():
    table = _repo()
    table[("rev-parse", "--short=7", "HEAD")] = (0, b"\n")
    data = _collect(table, show_sha=True)
    assert data.secondary == "✓"
    assert "sha" not in data.metadata