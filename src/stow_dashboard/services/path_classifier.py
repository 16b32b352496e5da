"""
Path classification: ignore-segment matching and project-root detection.

Ignore patterns match complete path segments, never substrings, so a
project called ``builder`` is not swallowed by the ``build`` pattern.
Matching is case-insensitive and works on slash-normalised paths. A pattern
may span several segments (``help/source``), in which case the segments must
appear contiguously.
"""

import os
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence, Tuple, Union

PathLike = Union[str, Path]

# Existence of any of these directly inside a directory makes it a project root.
PROJECT_INDICATORS: Tuple[str, ...] = (
    "package.json",
    "requirements.txt",
    "pyproject.toml",
    "composer.json",
    "build.gradle",
    "pom.xml",
    ".git",
    "README.md",
)

# Indicators that on their own do not make a child directory a nested project
# (documentation folders routinely carry a README).
WEAK_INDICATORS: Tuple[str, ...] = ("README.md",)

# Per-project cache file written by the old per-directory caching scheme.
LEGACY_META_FILENAME = ".project_meta.json"


def split_segments(path: PathLike) -> List[str]:
    """Lower-cased, slash-normalised segments of ``path`` without empty parts."""
    text = str(path).replace("\\", "/").lower()
    return [part for part in PurePosixPath(text).parts if part not in ("", "/", ".")]


class PathClassifier:
    """Decides which paths are ignored and which directories are projects."""

    def __init__(self, ignore_patterns: Iterable[str]):
        patterns: List[Tuple[str, ...]] = []
        for raw in ignore_patterns:
            segments = tuple(split_segments(raw.strip())) if raw else ()
            if segments and segments not in patterns:
                patterns.append(segments)
        self._single = frozenset(p[0] for p in patterns if len(p) == 1)
        self._multi = [p for p in patterns if len(p) > 1]

    @property
    def patterns(self) -> List[str]:
        return sorted(self._single) + ["/".join(p) for p in self._multi]

    def is_ignored(self, path: PathLike, base: Optional[PathLike] = None) -> bool:
        """True iff an ignore pattern occurs as whole segment(s) in ``path``.

        When ``base`` is given and contains ``path``, only the part below
        ``base`` is examined, so the location of a scan root never causes its
        whole tree to be ignored.
        """
        return self.segments_ignored(split_segments(self._relative(path, base)))

    def segments_ignored(self, segments: Sequence[str]) -> bool:
        if any(segment in self._single for segment in segments):
            return True
        for pattern in self._multi:
            width = len(pattern)
            for start in range(len(segments) - width + 1):
                if tuple(segments[start : start + width]) == pattern:
                    return True
        return False

    @staticmethod
    def is_project_directory(path: PathLike, include_weak: bool = True) -> bool:
        """True iff any project indicator exists directly inside ``path``."""
        indicators = PROJECT_INDICATORS
        if not include_weak:
            indicators = tuple(i for i in PROJECT_INDICATORS if i not in WEAK_INDICATORS)
        return any(os.path.exists(os.path.join(path, name)) for name in indicators)

    @staticmethod
    def _relative(path: PathLike, base: Optional[PathLike]) -> str:
        if base is None:
            return str(path)
        try:
            relative = os.path.relpath(path, base)
        except ValueError:
            # Different drives on Windows
            return str(path)
        if relative == os.curdir:
            return ""
        if relative == os.pardir or relative.startswith(os.pardir + os.sep):
            return str(path)
        return relative
