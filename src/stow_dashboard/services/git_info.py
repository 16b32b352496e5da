"""
Git repository summary for a project directory.

History is read from a bounded window of the most recent commits on the
current branch (1000 by default). Totals, the user's share and the creation
date are computed over that window only: a repository with 1500 commits
reports ``total_commits == 1000`` and a ``project_created`` date that is the
1000th most recent commit. The bound keeps inspection time bounded on large
repositories.

Authorship uses the identity git resolves from inside the repository. When
it is unset both name and email fall back to ``"Unknown"``, so commits by
different authors without a configured identity are attributed together.
"""

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..models import UNKNOWN_BRANCH, UNKNOWN_IDENTITY, GitInfo
from ..utils.git_runner import (
    DEFAULT_GIT_TIMEOUT,
    get_config_value,
    get_current_branch,
    is_git_repository,
    run_git_command,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 1000

_FIELD_SEP = "\x1f"
_LOG_FORMAT = "%H%x1f%an%x1f%ae%x1f%aI"
_AHEAD_RE = re.compile(r"ahead (\d+)")
_BEHIND_RE = re.compile(r"behind (\d+)")


@dataclass
class CommitEntry:
    sha: str
    author_name: str
    author_email: str
    date: str


@dataclass
class WorkingTreeStatus:
    ahead: int = 0
    behind: int = 0
    has_remote_tracking: bool = False
    uncommitted_changes: int = 0
    is_clean: bool = True


class GitInfoCollector:
    """Collects a GitInfo record for a directory; never raises."""

    def __init__(
        self,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        timeout: Optional[float] = DEFAULT_GIT_TIMEOUT,
    ):
        self.history_limit = history_limit
        self.timeout = timeout

    def collect(self, path: Union[str, Path]) -> GitInfo:
        """Summarise the repository containing ``path``.

        Returns ``GitInfo(git_detected=False)`` for non-repositories and
        ``GitInfo(git_detected=False, git_error=...)`` if inspection fails
        unexpectedly.
        """
        try:
            return self._collect(Path(path))
        except Exception as e:
            logger.debug(f"Git inspection failed for {path}: {e}")
            return GitInfo.not_detected(error=str(e) or type(e).__name__)

    def _collect(self, path: Path) -> GitInfo:
        if not is_git_repository(path, timeout=self.timeout):
            return GitInfo.not_detected()

        current_user = get_config_value(path, "user.name", self.timeout) or UNKNOWN_IDENTITY
        current_email = (
            get_config_value(path, "user.email", self.timeout) or UNKNOWN_IDENTITY
        )

        commits = self.read_history(path)
        user_commits = [
            c
            for c in commits
            if c.author_name == current_user or c.author_email == current_email
        ]

        status = self.read_status(path)
        branch = get_current_branch(path, timeout=self.timeout) or UNKNOWN_BRANCH

        return GitInfo(
            git_detected=True,
            current_user=current_user,
            current_email=current_email,
            total_commits=len(commits),
            user_commits=len(user_commits),
            project_created=commits[-1].date if commits else None,
            last_total_commit_date=commits[0].date if commits else None,
            last_user_commit_date=user_commits[0].date if user_commits else None,
            remotes=self.read_remotes(path),
            current_branch=branch,
            ahead=status.ahead,
            behind=status.behind,
            has_remote_tracking=status.has_remote_tracking,
            uncommitted_changes=status.uncommitted_changes,
            is_clean=status.is_clean,
        )

    def read_history(self, path: Path) -> List[CommitEntry]:
        """Newest-first commits in the bounded window; empty for an unborn branch."""
        result = run_git_command(
            ["git", "log", f"--max-count={self.history_limit}", f"--format={_LOG_FORMAT}"],
            cwd=path,
            check=False,
            timeout=self.timeout,
        )
        if result.returncode != 0:
            if not self._has_head(path):
                return []
            raise subprocess.CalledProcessError(
                result.returncode, result.args, result.stdout, result.stderr
            )

        commits = []
        for line in result.stdout.splitlines():
            parts = line.split(_FIELD_SEP)
            if len(parts) != 4:
                continue
            commits.append(CommitEntry(*parts))
        return commits

    def read_remotes(self, path: Path) -> List[str]:
        """One URL per remote, fetch preferred over push, in git's order."""
        try:
            result = run_git_command(
                ["git", "remote", "-v"], cwd=path, check=True, timeout=self.timeout
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"Cannot list remotes for {path}: {e}")
            return []

        remotes: Dict[str, Dict[str, str]] = {}
        for line in result.stdout.splitlines():
            if "\t" not in line:
                continue
            name, rest = line.split("\t", 1)
            url, _, kind = rest.rpartition(" ")
            if not url:
                url, kind = rest, "(fetch)"
            refs = remotes.setdefault(name, {})
            refs.setdefault(kind.strip("()"), url.strip())

        urls = []
        for refs in remotes.values():
            url = refs.get("fetch") or refs.get("push")
            if url:
                urls.append(url)
        return urls

    def read_status(self, path: Path) -> WorkingTreeStatus:
        """Ahead/behind and dirty-file counts; zero values if git status fails."""
        status = WorkingTreeStatus()
        try:
            result = run_git_command(
                ["git", "status", "--porcelain=v1", "--branch"],
                cwd=path,
                check=True,
                timeout=self.timeout,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"Cannot read status for {path}: {e}")
            return status

        changed = 0
        for line in result.stdout.splitlines():
            if line.startswith("## "):
                header = line[3:]
                status.has_remote_tracking = "..." in header
                ahead = _AHEAD_RE.search(header)
                behind = _BEHIND_RE.search(header)
                status.ahead = int(ahead.group(1)) if ahead else 0
                status.behind = int(behind.group(1)) if behind else 0
            elif line.strip():
                changed += 1

        status.uncommitted_changes = changed
        status.is_clean = changed == 0
        return status

    def _has_head(self, path: Path) -> bool:
        result = run_git_command(
            ["git", "rev-parse", "--verify", "--quiet", "HEAD"],
            cwd=path,
            check=False,
            timeout=self.timeout,
        )
        return result.returncode == 0
