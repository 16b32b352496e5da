"""
Project metadata extraction.

Builds one ProjectRecord from a leaf project directory by combining the tree
walkers, the git collector and a handful of best-effort manifest readers.
Each manifest reader is independent: a missing or malformed manifest only
loses that reader's contribution.
"""

import json
import logging
import os
import re
import tomllib
from pathlib import Path
from typing import Collection, List, Optional, Tuple

from dotenv import dotenv_values

from ..models import ProjectRecord
from ..utils.timestamps import nanos_to_iso
from .git_info import GitInfoCollector
from .path_classifier import PathClassifier
from .tree_walkers import calculate_sizes, latest_timestamps

logger = logging.getLogger(__name__)

README_NAMES = ("README.md", "readme.md", "Readme.md", "README.markdown")
SENSITIVE_KEY_RE = re.compile(r"token|secret|password|key|credentials", re.IGNORECASE)
_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s*")
_REQUIREMENT_OPTION_RE = re.compile(r"^-{1,2}[a-z]")


class MetadataExtractor:
    """Turns a project directory into a ProjectRecord."""

    def __init__(
        self,
        classifier: PathClassifier,
        git_collector: Optional[GitInfoCollector] = None,
        excluded_paths: Collection[str] = (),
    ):
        self.classifier = classifier
        self.git_collector = git_collector or GitInfoCollector()
        self.excluded_paths = tuple(excluded_paths)

    def extract(self, directory: str) -> ProjectRecord:
        timestamps = latest_timestamps(directory, self.classifier, self.excluded_paths)

        name: Optional[str] = None
        description: Optional[str] = None
        stack: List[str] = []

        for reader in (self._read_package_json, self._read_pyproject):
            manifest_name, manifest_description, dependencies = reader(directory)
            name = name or manifest_name
            description = description or manifest_description
            stack.extend(dependencies)

        stack.extend(self._read_requirements(directory))

        if not name or not description:
            readme_name, readme_description = self._read_readme(directory)
            name = name or readme_name
            description = description or readme_description

        sizes = calculate_sizes(directory, self.classifier, self.excluded_paths)

        return ProjectRecord(
            directory=directory,
            created=self._created_at(directory),
            last_accessed=nanos_to_iso(timestamps.latest_access_ns),
            last_modified=nanos_to_iso(timestamps.latest_modify_ns),
            project_name=name or os.path.basename(os.path.normpath(directory)),
            description=description,
            stack=stack,
            file_types=sizes.file_types,
            content_size_bytes=sizes.content_size_bytes,
            libs_size_bytes=sizes.libs_size_bytes,
            credentials=detect_credential_keys(directory),
            git_info=self.git_collector.collect(directory),
        )

    @staticmethod
    def _created_at(directory: str) -> Optional[str]:
        try:
            stat = os.stat(directory)
        except OSError:
            return None
        birth = getattr(stat, "st_birthtime_ns", None)
        if birth is None and getattr(stat, "st_birthtime", None) is not None:
            birth = int(stat.st_birthtime * 1_000_000_000)
        return nanos_to_iso(birth if birth else stat.st_ctime_ns)

    @staticmethod
    def _read_package_json(directory: str) -> Tuple[Optional[str], Optional[str], List[str]]:
        path = Path(directory) / "package.json"
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None, None, []
        except (OSError, ValueError) as e:
            logger.debug(f"Ignoring unreadable {path}: {e}")
            return None, None, []
        if not isinstance(data, dict):
            return None, None, []

        dependencies = data.get("dependencies")
        names = list(dependencies.keys()) if isinstance(dependencies, dict) else []
        return _text_or_none(data.get("name")), _text_or_none(data.get("description")), names

    @staticmethod
    def _read_pyproject(directory: str) -> Tuple[Optional[str], Optional[str], List[str]]:
        path = Path(directory) / "pyproject.toml"
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError:
            return None, None, []
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.debug(f"Ignoring unreadable {path}: {e}")
            return None, None, []

        project = data.get("project")
        if not isinstance(project, dict):
            return None, None, []
        dependencies = project.get("dependencies")
        names = [
            _requirement_name(d) for d in dependencies if isinstance(d, str)
        ] if isinstance(dependencies, list) else []
        return (
            _text_or_none(project.get("name")),
            _text_or_none(project.get("description")),
            [n for n in names if n],
        )

    @staticmethod
    def _read_requirements(directory: str) -> List[str]:
        path = Path(directory) / "requirements.txt"
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return []
        entries = []
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or _REQUIREMENT_OPTION_RE.match(line):
                continue
            entries.append(line)
        return entries

    @staticmethod
    def _read_readme(directory: str) -> Tuple[Optional[str], Optional[str]]:
        for readme_name in README_NAMES:
            path = Path(directory) / readme_name
            try:
                content = path.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            return parse_readme(content)
        return None, None


def parse_readme(content: str) -> Tuple[Optional[str], Optional[str]]:
    """Name from the first Markdown heading, description from the paragraph after it."""
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", content.replace("\r\n", "\n"))]
    paragraphs = [p for p in paragraphs if p]

    for index, paragraph in enumerate(paragraphs):
        first_line, _, rest = paragraph.partition("\n")
        if not _HEADING_RE.match(first_line):
            continue
        name = _HEADING_RE.sub("", first_line).strip().rstrip("#").strip() or None
        if rest.strip() and not _HEADING_RE.match(rest.strip()):
            return name, rest.strip()
        for following in paragraphs[index + 1 :]:
            if not _HEADING_RE.match(following):
                return name, following
        return name, None
    return None, None


def detect_credential_keys(directory: str) -> List[str]:
    """Names of sensitive-looking keys in the directory's dotenv files.

    Only files directly inside ``directory`` whose name starts with ``.env``
    are read. Values are discarded immediately.
    """
    try:
        names = sorted(os.listdir(directory))
    except OSError:
        return []

    keys: List[str] = []
    for file_name in names:
        if not file_name.startswith(".env"):
            continue
        path = os.path.join(directory, file_name)
        if not os.path.isfile(path):
            continue
        try:
            parsed = dotenv_values(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Ignoring unreadable {path}: {e}")
            continue
        keys.extend(key for key in parsed if SENSITIVE_KEY_RE.search(key))
    return list(dict.fromkeys(keys))


def _text_or_none(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _requirement_name(requirement: str) -> str:
    match = re.match(r"\s*([A-Za-z0-9][A-Za-z0-9._-]*)", requirement)
    return match.group(1) if match else ""
