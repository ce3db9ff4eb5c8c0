"""Git branch, working-tree state and upstream divergence."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from enum import Enum

from cometixline.config import InputData, SegmentId
from cometixline.segments.base import Segment, SegmentData

_CONFLICT_MARKERS = ("UU", "AA", "DD")


class GitStatus(Enum):
    """State of the working tree."""

    CLEAN = "Clean"
    DIRTY = "Dirty"
    CONFLICTS = "Conflicts"


@dataclass
class GitInfo:
    """What the segment learns about a repository."""

    branch: str
    status: GitStatus
    ahead: int = 0
    behind: int = 0
    sha: str | None = None


def _git(working_dir: str, *args: str) -> subprocess.CompletedProcess[bytes] | None:
    try:
        return subprocess.run(
            ["git", "--no-optional-locks", *args],
            cwd=working_dir,
            capture_output=True,
        )
    except (OSError, ValueError):
        return None


def _stdout(result: subprocess.CompletedProcess[bytes] | None) -> str | None:
    """Trimmed UTF-8 output of a successful command, else None."""
    if result is None or result.returncode != 0:
        return None
    try:
        return result.stdout.decode("utf-8").strip()
    except UnicodeDecodeError:
        return None


class GitSegment(Segment):
    """Current branch with clean/dirty/conflict marker, ahead/behind counts and short SHA."""

    id = SegmentId.GIT

    def __init__(self, show_sha: bool = False) -> None:
        self.show_sha = show_sha

    def _is_repository(self, working_dir: str) -> bool:
        result = _git(working_dir, "rev-parse", "--git-dir")
        return result is not None and result.returncode == 0

    def _branch(self, working_dir: str) -> str | None:
        for args in (("branch", "--show-current"), ("symbolic-ref", "--short", "HEAD")):
            result = _git(working_dir, *args)
            if result is None or result.returncode != 0:
                continue
            branch = _stdout(result)
            if branch is None:
                return None
            if branch:
                return branch
        return None

    def _status(self, working_dir: str) -> GitStatus:
        result = _git(working_dir, "status", "--porcelain")
        if result is None or result.returncode != 0:
            return GitStatus.CLEAN
        try:
            text = result.stdout.decode("utf-8")
        except UnicodeDecodeError:
            text = ""
        if not text.strip():
            return GitStatus.CLEAN
        if any(marker in text for marker in _CONFLICT_MARKERS):
            return GitStatus.CONFLICTS
        return GitStatus.DIRTY

    def _commit_count(self, working_dir: str, revision_range: str) -> int:
        text = _stdout(_git(working_dir, "rev-list", "--count", revision_range))
        if text is None or not text.isascii() or not text.isdigit():
            return 0
        count = int(text)
        return count if count <= 0xFFFF_FFFF else 0

    def _sha(self, working_dir: str) -> str | None:
        sha = _stdout(_git(working_dir, "rev-parse", "--short=7", "HEAD"))
        return sha or None

    def _info(self, working_dir: str) -> GitInfo | None:
        if not self._is_repository(working_dir):
            return None
        return GitInfo(
            branch=self._branch(working_dir) or "detached",
            status=self._status(working_dir),
            ahead=self._commit_count(working_dir, "@{u}..HEAD"),
            behind=self._commit_count(working_dir, "HEAD..@{u}"),
            sha=self._sha(working_dir) if self.show_sha else None,
        )

    def collect(self, input_data: InputData) -> SegmentData | None:
        info = self._info(input_data.workspace.current_dir)
        if info is None:
            return None

        metadata = {
            "branch": info.branch,
            "status": info.status.value,
            "ahead": str(info.ahead),
            "behind": str(info.behind),
        }
        if info.sha is not None:
            metadata["sha"] = info.sha

        markers = {GitStatus.CLEAN: "✓", GitStatus.DIRTY: "●", GitStatus.CONFLICTS: "⚠"}
        parts = [markers[info.status]]
        if info.ahead > 0:
            parts.append(f"↑{info.ahead}")
        if info.behind > 0:
            parts.append(f"↓{info.behind}")
        if info.sha is not None:
            parts.append(info.sha)

        return SegmentData(primary=info.branch, secondary=" ".join(parts), metadata=metadata)