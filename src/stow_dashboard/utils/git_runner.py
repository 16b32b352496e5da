"""
Centralized Git command runner with dubious ownership handling.

Scanned directories frequently belong to other users (mounted volumes,
checkouts made under sudo, containers), which makes git refuse to operate
with a "dubious ownership" error. Every command goes through
``run_git_command`` so the ``safe.directory`` override and the per-call
timeout are applied consistently.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 30.0


def get_git_environment(project_dir: Path) -> Dict[str, str]:
    """
    Get environment variables for git commands to handle dubious ownership.

    Args:
        project_dir: Path to the project directory

    Returns:
        Dictionary of environment variables for git commands
    """
    env = os.environ.copy()

    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(project_dir.resolve())

    # Shift caller-provided GIT_CONFIG_* entries up by one to keep them
    config_count = 1
    for key in os.environ:
        if key.startswith("GIT_CONFIG_KEY_"):
            idx = key.replace("GIT_CONFIG_KEY_", "")
            if idx.isdigit():
                new_idx = int(idx) + 1
                env[f"GIT_CONFIG_KEY_{new_idx}"] = os.environ[key]
                if f"GIT_CONFIG_VALUE_{idx}" in os.environ:
                    env[f"GIT_CONFIG_VALUE_{new_idx}"] = os.environ[
                        f"GIT_CONFIG_VALUE_{idx}"
                    ]
                config_count = max(config_count, new_idx + 1)

    env["GIT_CONFIG_COUNT"] = str(config_count)
    # Never block a scan on a credential or pager prompt
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GIT_PAGER"] = "cat"

    return env


def run_git_command(
    cmd: List[str],
    cwd: Union[str, Path],
    check: bool = True,
    timeout: Optional[float] = DEFAULT_GIT_TIMEOUT,
) -> subprocess.CompletedProcess:
    """
    Run a git command with proper environment handling for dubious ownership.

    Args:
        cmd: Git command as a list (e.g., ["git", "status"])
        cwd: Working directory for the command
        check: Whether to raise CalledProcessError on non-zero exit
        timeout: Timeout in seconds; None waits forever

    Returns:
        CompletedProcess with text stdout/stderr

    Raises:
        subprocess.CalledProcessError: If check=True and command fails
        subprocess.TimeoutExpired: If timeout is exceeded
        FileNotFoundError: If git is not installed
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    cwd = Path(cwd)
    env = get_git_environment(cwd)

    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            check=check,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            env=env,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"Git command timed out after {timeout}s: {' '.join(cmd)} in {cwd}")
        raise


def is_git_repository(project_dir: Union[str, Path], timeout: Optional[float] = DEFAULT_GIT_TIMEOUT) -> bool:
    """
    Check if a directory is inside a git work tree.

    Args:
        project_dir: Path to check
        timeout: Timeout in seconds

    Returns:
        True if the directory is a git repository, False otherwise
    """
    try:
        result = run_git_command(
            ["git", "rev-parse", "--is-inside-work-tree"],
            cwd=project_dir,
            check=True,
            timeout=timeout,
        )
        return result.stdout.strip().lower() == "true"
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        return False


def get_config_value(
    project_dir: Union[str, Path], key: str, timeout: Optional[float] = DEFAULT_GIT_TIMEOUT
) -> Optional[str]:
    """
    Read a config value as git resolves it from inside ``project_dir``.

    Returns:
        The value, or None when unset or git fails
    """
    try:
        result = run_git_command(
            ["git", "config", "--get", key], cwd=project_dir, check=True, timeout=timeout
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        return None
    value = result.stdout.strip()
    return value or None


def get_current_branch(
    project_dir: Union[str, Path], timeout: Optional[float] = DEFAULT_GIT_TIMEOUT
) -> Optional[str]:
    """
    Get the current git branch name.

    Returns:
        Branch name, ``detached-<sha>`` on a detached HEAD, or None on failure
    """
    try:
        result = run_git_command(
            ["git", "branch", "--show-current"],
            cwd=project_dir,
            check=True,
            timeout=timeout,
        )
        branch = result.stdout.strip()

        if not branch:
            try:
                result = run_git_command(
                    ["git", "rev-parse", "--short", "HEAD"],
                    cwd=project_dir,
                    check=True,
                    timeout=timeout,
                )
                return f"detached-{result.stdout.strip()}"
            except subprocess.CalledProcessError:
                return None

        return str(branch)
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        return None
