"""
Snapshot persistence.

The snapshot is one UTF-8 file with one compact JSON ProjectRecord per line.
It is both the staleness cache read at the start of a scan and the output
artifact consumed by the dashboard. Saves always overwrite the whole file;
projects that a later scan no longer visits simply disappear.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from ..errors import SnapshotWriteError
from ..models import ProjectRecord
from ..progress import ProgressCallback, ProgressEvent, emit
from .git_info import GitInfoCollector
from .path_classifier import LEGACY_META_FILENAME, PathClassifier

logger = logging.getLogger(__name__)


def load_snapshot(path: Union[str, Path]) -> List[ProjectRecord]:
    """Read every valid record; a missing file is an empty snapshot."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.warning(f"Cannot read snapshot {path}, starting empty: {e}")
        return []

    records = []
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
            if not isinstance(data, dict):
                raise ValueError("line is not a JSON object")
            records.append(ProjectRecord.from_dict(data))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Skipping malformed snapshot line {line_number} in {path}: {e}")
    return records


def serialize_record(record: ProjectRecord) -> str:
    return json.dumps(record.to_dict(), separators=(",", ":"), ensure_ascii=False)


def save_snapshot(
    path: Union[str, Path],
    records: Iterable[ProjectRecord],
    progress_callback: Optional[ProgressCallback] = None,
) -> None:
    """Overwrite ``path`` with ``records``.

    The content is written to a temporary file in the same directory and
    renamed over the target, so readers never see a half-written snapshot.

    Raises:
        SnapshotWriteError: The file could not be written.
    """
    path = Path(path)
    content = "".join(serialize_record(record) + "\n" for record in records)

    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
        logger.error(f"Failed to write snapshot {path}: {e}")
        raise SnapshotWriteError(path, str(e)) from e

    logger.debug(f"Wrote snapshot {path}")
    emit(progress_callback, ProgressEvent.synced(str(path)))


def cleanup_legacy_metadata(
    roots: Sequence[Union[str, Path]],
    classifier: PathClassifier,
    progress_callback: Optional[ProgressCallback] = None,
) -> int:
    """Delete per-project ``.project_meta.json`` files left by older scanners.

    Ignored subtrees are not visited. A file that vanished before it could be
    removed counts as already cleaned. Returns the number of files deleted.
    """
    deleted = 0
    for root in roots:
        root_path = os.path.abspath(str(root))
        if not os.path.isdir(root_path):
            logger.info(f"Skipping inaccessible cleanup root {root_path}")
            continue

        stack = [root_path]
        while stack:
            current = stack.pop()
            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logger.debug(f"Cannot read directory {current}: {e}")
                continue

            for entry in entries:
                if classifier.is_ignored(entry.path, base=root_path):
                    continue
                try:
                    if entry.is_dir(follow_symlinks=False):
                        stack.append(entry.path)
                        continue
                except OSError:
                    continue
                if entry.name != LEGACY_META_FILENAME:
                    continue
                try:
                    os.unlink(entry.path)
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.warning(f"Cannot delete {entry.path}: {e}")
                    continue
                deleted += 1
                emit(progress_callback, ProgressEvent.deleted(entry.path))
    return deleted


def refresh_git_info(
    records: List[ProjectRecord],
    directories: Iterable[Union[str, Path]],
    collector: Optional[GitInfoCollector] = None,
) -> Tuple[List[str], List[str]]:
    """Re-collect ``git_info`` for the given snapshot directories in place.

    Returns ``(refreshed, unknown)`` directory lists. Directories that are not
    in ``records`` are left alone.
    """
    collector = collector or GitInfoCollector()
    by_directory = {os.path.abspath(r.directory): r for r in records}
    refreshed: List[str] = []
    unknown: List[str] = []

    for directory in directories:
        key = os.path.abspath(str(directory))
        record = by_directory.get(key)
        if record is None:
            logger.info(f"Not in snapshot, skipping git refresh: {key}")
            unknown.append(key)
            continue
        record.git_info = collector.collect(record.directory)
        refreshed.append(record.directory)
    return refreshed, unknown
