"""Scanning services: classification, walking, extraction and persistence."""

from .git_info import GitInfoCollector
from .metadata_extractor import MetadataExtractor
from .path_classifier import PathClassifier
from .project_scanner import IncrementalScanner, ScanResult, scan_projects
from .snapshot_store import (
    cleanup_legacy_metadata,
    load_snapshot,
    refresh_git_info,
    save_snapshot,
)

__all__ = [
    "GitInfoCollector",
    "MetadataExtractor",
    "PathClassifier",
    "IncrementalScanner",
    "ScanResult",
    "scan_projects",
    "cleanup_legacy_metadata",
    "load_snapshot",
    "refresh_git_info",
    "save_snapshot",
]
