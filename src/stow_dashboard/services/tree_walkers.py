"""
Recursive walkers over a single project directory.

Both walkers use an explicit stack instead of call recursion so that deeply
nested or adversarial trees cannot exhaust the interpreter stack. Symlinked
directories are never descended into. Any failure to list a directory or
stat an entry is logged at DEBUG and skipped; the walkers never raise.
"""

import logging
import os
from collections import Counter
from typing import Collection, Dict, List, NamedTuple, Optional, Tuple

from .path_classifier import LEGACY_META_FILENAME, PathClassifier

logger = logging.getLogger(__name__)

NO_EXTENSION = "no_extension"


class TreeTimestamps(NamedTuple):
    latest_access_ns: int
    latest_modify_ns: int


class TreeSizes(NamedTuple):
    content_size_bytes: int
    libs_size_bytes: int
    file_types: Dict[str, int]


def _list_entries(directory: str) -> Optional[List[os.DirEntry]]:
    try:
        with os.scandir(directory) as entries:
            return list(entries)
    except OSError as e:
        logger.debug(f"Cannot read directory {directory}: {e}")
        return None


def _is_real_directory(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


def _normalize_excluded(paths: Collection[str]) -> frozenset:
    return frozenset(os.path.abspath(p) for p in paths)


def _excluded_holders(directory: str, excluded: Collection[str]) -> frozenset:
    """Directories strictly below ``directory`` that contain an excluded path."""
    root = os.path.abspath(directory)
    holders = set()
    for path in excluded:
        parent = os.path.dirname(path)
        while parent != root and os.path.dirname(parent) != parent:
            if os.path.commonpath([root, parent]) != root:
                break
            holders.add(parent)
            parent = os.path.dirname(parent)
    return frozenset(holders)


def latest_timestamps(
    directory: str,
    classifier: PathClassifier,
    excluded_paths: Collection[str] = (),
) -> TreeTimestamps:
    """Maximum atime and mtime over every non-ignored entry below ``directory``.

    Directories count as entries because their own mtime moves when children
    are added or removed. The legacy per-project cache file and any path in
    ``excluded_paths`` (the snapshot file, when it lives inside a scanned tree)
    never influence the result. Directories holding an excluded path are still
    walked, but their own times are not counted, since writing the excluded file
    moves them.
    """
    excluded = _normalize_excluded(excluded_paths)
    holders = _excluded_holders(directory, excluded)
    latest_access = 0
    latest_modify = 0
    stack = [directory]

    while stack:
        current = stack.pop()
        entries = _list_entries(current)
        if entries is None:
            continue

        for entry in entries:
            if entry.name == LEGACY_META_FILENAME:
                continue
            if excluded and os.path.abspath(entry.path) in excluded:
                continue
            if classifier.is_ignored(entry.path, base=directory):
                continue
            if holders and os.path.abspath(entry.path) in holders:
                if _is_real_directory(entry):
                    stack.append(entry.path)
                continue

            try:
                stat = entry.stat()
            except OSError as e:
                logger.debug(f"Cannot stat {entry.path}: {e}")
                continue

            latest_access = max(latest_access, stat.st_atime_ns)
            latest_modify = max(latest_modify, stat.st_mtime_ns)

            if _is_real_directory(entry):
                stack.append(entry.path)

    return TreeTimestamps(latest_access, latest_modify)


def calculate_sizes(
    directory: str,
    classifier: PathClassifier,
    excluded_paths: Collection[str] = (),
) -> TreeSizes:
    """Split the bytes under ``directory`` into content and library buckets.

    A file is library weight when it, or any directory between it and
    ``directory``, matches an ignore pattern. The classification is sticky:
    once a directory is library, everything below it is too. Extension counts
    cover content files only.
    """
    excluded = _normalize_excluded(excluded_paths)
    content_bytes = 0
    libs_bytes = 0
    file_types: Counter = Counter()
    stack: List[Tuple[str, bool]] = [(directory, False)]

    while stack:
        current, in_libs = stack.pop()
        entries = _list_entries(current)
        if entries is None:
            continue

        for entry in entries:
            is_lib = in_libs or classifier.is_ignored(entry.path, base=directory)

            if _is_real_directory(entry):
                stack.append((entry.path, is_lib))
                continue

            if entry.name == LEGACY_META_FILENAME:
                continue
            if excluded and os.path.abspath(entry.path) in excluded:
                continue

            try:
                if not entry.is_file():
                    continue
                size = entry.stat().st_size
            except OSError as e:
                logger.debug(f"Cannot stat {entry.path}: {e}")
                continue

            if is_lib:
                libs_bytes += size
            else:
                content_bytes += size
                extension = os.path.splitext(entry.name)[1].lower() or NO_EXTENSION
                file_types[extension] += 1

    return TreeSizes(content_bytes, libs_bytes, dict(file_types))
