"""
Shared pytest fixtures for Stow Dashboard tests.

Provides project-tree builders and real git repositories. Git runs with the
user's global and system configuration disabled so identity resolution only
sees what a test configures locally.
"""

import os
import subprocess
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

from stow_dashboard.config import ScanConfig
from stow_dashboard.services.path_classifier import PathClassifier

FIXTURE_IDENTITY = ["-c", "user.name=Fixture Bot", "-c", "user.email=fixture@example.com"]

# A fixed instant well in the past, used to pin mtimes
PAST_NS = 1_600_000_000_000_000_000


@pytest.fixture(autouse=True)
def isolated_git(monkeypatch, tmp_path):
    """Keep git away from the developer's config and any enclosing repository."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    for key in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
        monkeypatch.delenv(key, raising=False)


def run_git(path: Path, *args: str, input: Optional[bytes] = None) -> str:
    """Run git in ``path`` with a fixture identity; return stdout."""
    result = subprocess.run(
        ["git", *FIXTURE_IDENTITY, *args],
        cwd=path,
        check=True,
        capture_output=True,
        input=input,
    )
    return result.stdout.decode("utf-8", "replace")


def init_repo(
    path: Path, user: Optional[str] = "Test User", email: Optional[str] = "test@example.com"
) -> Path:
    """Initialise a repository on ``main``; ``None`` leaves the identity unset."""
    path.mkdir(parents=True, exist_ok=True)
    run_git(path, "init", "-q")
    run_git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(path, "config", "commit.gpgsign", "false")
    if user is not None:
        run_git(path, "config", "user.name", user)
    if email is not None:
        run_git(path, "config", "user.email", email)
    return path


def commit_all(path: Path, message: str = "commit", author: Optional[str] = None) -> None:
    run_git(path, "add", "-A")
    args = ["commit", "-q", "--allow-empty", "-m", message]
    if author:
        args.append(f"--author={author}")
    run_git(path, *args)


def write_tree(base: Path, files: Dict[str, str]) -> Path:
    """Create ``files`` (relative path -> text) under ``base``."""
    base.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        target = base / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return base


def pin_mtimes(base: Path, epoch_ns: int = PAST_NS) -> None:
    """Set every entry under ``base`` (and ``base`` itself) to one mtime."""
    for dirpath, dirnames, filenames in os.walk(base):
        for name in dirnames + filenames:
            os.utime(os.path.join(dirpath, name), ns=(epoch_ns, epoch_ns), follow_symlinks=False)
    os.utime(base, ns=(epoch_ns, epoch_ns))


@pytest.fixture
def classifier() -> PathClassifier:
    return PathClassifier(ScanConfig().effective_ignore_patterns())


@pytest.fixture
def make_project(tmp_path) -> Callable[..., Path]:
    """Factory: ``make_project("name", {"file": "text"})`` under ``tmp_path/root``."""

    def _make(name: str, files: Optional[Dict[str, str]] = None) -> Path:
        return write_tree(tmp_path / "root" / name, files or {"package.json": "{}"})

    return _make


@pytest.fixture
def scan_root(tmp_path) -> Path:
    root = tmp_path / "root"
    root.mkdir(exist_ok=True)
    return root
