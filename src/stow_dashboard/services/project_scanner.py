"""
Incremental project scanner.

Walks the configured roots depth first, decides where projects begin and
end, and reuses snapshot records for projects whose tree has not been
modified since they were last extracted. Only leaf projects are indexed: a
project directory that contains nested projects is treated as a container
and its nested projects are indexed instead.

Traversal always runs on the calling thread. With ``max_workers > 1`` stale
leaf extractions run on a thread pool, but events are emitted and records
appended only from the calling thread, each event before its record.
"""

import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..config import ScanConfig
from ..models import ProjectRecord
from ..progress import ProgressCallback, ProgressEvent, ProgressEventType, emit
from ..utils.timestamps import iso_to_millis, nanos_to_millis
from .git_info import GitInfoCollector
from .metadata_extractor import MetadataExtractor
from .path_classifier import PathClassifier
from .snapshot_store import load_snapshot, save_snapshot
from .tree_walkers import latest_timestamps

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Outcome of one scan run."""

    projects: List[ProjectRecord] = field(default_factory=list)
    updated: int = 0
    existing: int = 0
    errors: int = 0
    total_time: float = 0.0
    cancelled: bool = False


def _list_subdirectories(directory: str) -> List[str]:
    """Sorted child directories, symlinks excluded; raises OSError on read failure."""
    children = []
    with os.scandir(directory) as entries:
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    children.append(entry.path)
            except OSError:
                continue
    return sorted(children)


class IncrementalScanner:
    """Discovers leaf projects under the configured roots."""

    def __init__(
        self,
        config: ScanConfig,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        extractor: Optional[MetadataExtractor] = None,
    ):
        self.config = config
        self.progress_callback = progress_callback
        self.cancel_event = cancel_event or threading.Event()
        self.classifier = PathClassifier(config.effective_ignore_patterns())

        excluded = [str(config.snapshot_path)] if config.snapshot_path else []
        self.excluded_paths = tuple(excluded)
        self.extractor = extractor or MetadataExtractor(
            self.classifier,
            GitInfoCollector(
                history_limit=config.git_history_limit, timeout=config.git_timeout
            ),
            excluded_paths=self.excluded_paths,
        )

    def scan(self, cached_records: Iterable[ProjectRecord] = ()) -> ScanResult:
        """Run one scan against ``cached_records`` as the staleness cache.

        The snapshot file is never written here; persisting the result is up
        to the caller.
        """
        start = time.monotonic()
        cache: Dict[str, ProjectRecord] = {
            os.path.abspath(record.directory): record for record in cached_records
        }
        result = ScanResult()
        seen: set = set()

        executor: Optional[ThreadPoolExecutor] = None
        pending: Dict[Future, str] = {}
        if self.config.max_workers > 1:
            executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers, thread_name_prefix="stow-extract"
            )

        try:
            for leaf in self._iter_leaf_projects(result):
                if self.cancel_event.is_set():
                    result.cancelled = True
                    break
                if leaf in seen:
                    logger.debug(f"Skipping already indexed project {leaf}")
                    continue
                seen.add(leaf)

                if executor is None:
                    self._resolve(leaf, cache.get(leaf), result)
                else:
                    if self._reuse_cached(leaf, cache.get(leaf), result):
                        continue
                    pending[executor.submit(self._timed_extract, leaf)] = leaf
                    self._drain(pending, result, wait=False)

            if self.cancel_event.is_set():
                result.cancelled = True
            if result.cancelled:
                for future in list(pending):
                    if future.cancel():
                        del pending[future]
            self._drain(pending, result, wait=True)
        finally:
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)

        result.total_time = time.monotonic() - start
        emit(
            self.progress_callback,
            ProgressEvent.complete(result.total_time, len(result.projects), result.cancelled),
        )
        if result.cancelled:
            logger.info(f"Scan cancelled after {len(result.projects)} projects")
        return result

    def _iter_leaf_projects(self, result: ScanResult):
        """Yield leaf project directories in depth-first order."""
        for root in self.config.scan_roots:
            root_path = os.path.abspath(str(root))
            if not os.path.isdir(root_path):
                logger.info(f"Skipping inaccessible scan root {root_path}")
                continue

            stack: List[Tuple[str, bool]] = [(root_path, True)]
            while stack:
                if self.cancel_event.is_set():
                    return
                directory, is_root = stack.pop()
                if not is_root and self.classifier.is_ignored(directory, base=root_path):
                    continue

                if self.classifier.is_project_directory(directory):
                    nested = self._nested_projects(directory, root_path)
                    if nested:
                        stack.extend((child, False) for child in reversed(nested))
                    else:
                        yield directory
                    continue

                try:
                    children = _list_subdirectories(directory)
                except OSError as e:
                    if is_root:
                        logger.info(f"Skipping unreadable scan root {root_path}: {e}")
                    else:
                        self._report_error(directory, f"Cannot read directory: {e}", result)
                    continue
                stack.extend((child, False) for child in reversed(children))

    def _nested_projects(self, directory: str, root: str) -> List[str]:
        try:
            children = _list_subdirectories(directory)
        except OSError as e:
            logger.debug(f"Cannot list {directory} for nested projects: {e}")
            return []
        return [
            child
            for child in children
            if not self.classifier.is_ignored(child, base=root)
            and self.classifier.is_project_directory(child, include_weak=False)
        ]

    def _resolve(
        self, directory: str, cached: Optional[ProjectRecord], result: ScanResult
    ) -> None:
        if self._reuse_cached(directory, cached, result):
            return
        try:
            record, elapsed = self._timed_extract(directory)
        except Exception as e:
            self._report_error(directory, str(e) or type(e).__name__, result)
            return
        self._append(ProgressEvent.updated(directory, elapsed), record, result)

    def _reuse_cached(
        self, directory: str, cached: Optional[ProjectRecord], result: ScanResult
    ) -> bool:
        """Append ``cached`` verbatim if the live tree is not newer than it."""
        if self.config.force_update or cached is None:
            return False

        start = time.monotonic()
        cached_millis = iso_to_millis(cached.last_modified)
        if cached_millis is None:
            return False

        live = latest_timestamps(directory, self.classifier, self.excluded_paths)
        if nanos_to_millis(live.latest_modify_ns) > cached_millis:
            return False

        self._append(
            ProgressEvent.existing(directory, time.monotonic() - start), cached, result
        )
        return True

    def _timed_extract(self, directory: str) -> Tuple[ProjectRecord, float]:
        start = time.monotonic()
        record = self.extractor.extract(directory)
        return record, time.monotonic() - start

    def _drain(self, pending: Dict[Future, str], result: ScanResult, wait: bool) -> None:
        if not pending:
            return
        if wait:
            done = list(as_completed(list(pending)))
        else:
            done = [future for future in pending if future.done()]

        for future in done:
            directory = pending.pop(future)
            try:
                record, elapsed = future.result()
            except Exception as e:
                self._report_error(directory, str(e) or type(e).__name__, result)
                continue
            self._append(ProgressEvent.updated(directory, elapsed), record, result)

    def _append(self, event: ProgressEvent, record: ProjectRecord, result: ScanResult) -> None:
        emit(self.progress_callback, event)
        result.projects.append(record)
        if event.type == ProgressEventType.UPDATED:
            result.updated += 1
        else:
            result.existing += 1

    def _report_error(self, directory: str, message: str, result: ScanResult) -> None:
        logger.warning(f"Failed to process {directory}: {message}")
        result.errors += 1
        emit(self.progress_callback, ProgressEvent.failed(directory, message))


def scan_projects(
    config: ScanConfig,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ScanResult:
    """Scan with the configured snapshot as cache and persist the result.

    Nothing is written when ``config.snapshot_path`` is None or the scan was
    cancelled.
    """
    cached = load_snapshot(config.snapshot_path) if config.snapshot_path else []
    scanner = IncrementalScanner(config, progress_callback, cancel_event)
    result = scanner.scan(cached)

    if config.snapshot_path and not result.cancelled:
        save_snapshot(config.snapshot_path, result.projects, progress_callback)
    return result
