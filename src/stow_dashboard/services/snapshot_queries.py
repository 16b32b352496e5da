"""Read-only queries over a loaded snapshot."""

import os
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from ..models import ProjectRecord

README_CANDIDATES = ("README.md", "readme.md", "README", "readme.txt")
DIRTY_KINDS = ("all", "uncommitted", "ahead", "behind")
TOP_STACK_ENTRIES = 15

_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(size: Optional[int]) -> str:
    """Human-readable byte count, base 1024 with one decimal (``1.5 MB``)."""
    if not size:
        return "0 B"
    value = float(size)
    for unit in _UNITS:
        if abs(value) < 1024 or unit == _UNITS[-1]:
            if unit == "B":
                return f"{int(value)} B"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {_UNITS[-1]}"


def search_projects(
    records: Sequence[ProjectRecord],
    query: Optional[str] = None,
    stack: Optional[str] = None,
    limit: int = 10,
) -> List[ProjectRecord]:
    """Case-insensitive substring search over name, directory, description and stack."""
    query = (query or "").lower()
    stack = (stack or "").lower()

    matches = []
    for record in records:
        stack_lower = [entry.lower() for entry in record.stack]
        if query:
            haystack = [
                record.project_name.lower(),
                record.directory.lower(),
                (record.description or "").lower(),
            ]
            if not any(query in text for text in haystack) and not any(
                query in entry for entry in stack_lower
            ):
                continue
        if stack and not any(stack in entry for entry in stack_lower):
            continue
        matches.append(record)
        if len(matches) >= limit:
            break
    return matches


def find_project(records: Sequence[ProjectRecord], name: str) -> Optional[ProjectRecord]:
    """Exact directory, then case-insensitive project name, then directory substring."""
    target = os.path.abspath(name) if os.path.isabs(name) else None
    if target:
        for record in records:
            if os.path.abspath(record.directory) == target:
                return record

    lowered = name.lower()
    for record in records:
        if record.project_name.lower() == lowered:
            return record
    for record in records:
        if lowered in record.directory.lower():
            return record
    return None


def dirty_projects(records: Sequence[ProjectRecord], kind: str = "all") -> List[ProjectRecord]:
    """Git repositories with uncommitted changes or diverged from upstream."""
    if kind not in DIRTY_KINDS:
        raise ValueError(f"Unknown dirty kind {kind!r}; expected one of {', '.join(DIRTY_KINDS)}")

    dirty = []
    for record in records:
        git = record.git_info
        if not git.git_detected:
            continue
        if kind == "all":
            flagged = git.uncommitted_changes > 0 or git.ahead > 0 or git.behind > 0
        else:
            flagged = getattr(git, "uncommitted_changes" if kind == "uncommitted" else kind) > 0
        if flagged:
            dirty.append(record)
    return dirty


def project_stats(records: Sequence[ProjectRecord]) -> Dict[str, Any]:
    stack_counts: Counter = Counter()
    for record in records:
        stack_counts.update(record.stack)

    content = sum(r.content_size_bytes for r in records)
    total = sum(r.total_size_bytes for r in records)
    return {
        "total_projects": len(records),
        "with_git": sum(1 for r in records if r.git_info.git_detected),
        "with_uncommitted": sum(1 for r in records if r.git_info.uncommitted_changes > 0),
        "behind_remote": sum(1 for r in records if r.git_info.behind > 0),
        "total_code_size": format_bytes(content),
        "total_size": format_bytes(total),
        "stack_breakdown": dict(stack_counts.most_common(TOP_STACK_ENTRIES)),
    }


def read_readme(directory: Union[str, Path]) -> Optional[str]:
    for name in README_CANDIDATES:
        path = Path(directory) / name
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
    return None


def project_details(record: ProjectRecord) -> Dict[str, Any]:
    """Summary used by ``show``; git fields only for repositories."""
    git = record.git_info
    return {
        "name": record.project_name,
        "directory": record.directory,
        "description": record.description,
        "stack": record.stack,
        "size": {
            "code": format_bytes(record.content_size_bytes),
            "libs": format_bytes(record.libs_size_bytes),
            "total": format_bytes(record.total_size_bytes),
        },
        "git": {
            "branch": git.current_branch,
            "remotes": git.remotes,
            "total_commits": git.total_commits,
            "your_commits": git.user_commits,
            "uncommitted_changes": git.uncommitted_changes,
            "ahead": git.ahead,
            "behind": git.behind,
        }
        if git.git_detected
        else None,
        "credentials": record.credentials,
        "has_readme": read_readme(record.directory) is not None,
        "last_modified": record.last_modified,
    }
