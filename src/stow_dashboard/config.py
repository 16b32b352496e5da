"""Configuration management for the Stow Dashboard scanner."""

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_PATTERNS: List[str] = [
    ".git",
    "node_modules",
    "venv",
    ".venv",
    "__pycache__",
    ".pytest_cache",
    "build",
    "dist",
    "python3.7",
    "python3.8",
    "python3.9",
    "python3.10",
    "python3.11",
    "python3.12",
    ".next",
]

DEFAULT_HOME = Path("~/.stow-dashboard").expanduser()
DEFAULT_SNAPSHOT_PATH = DEFAULT_HOME / "projects_metadata.jsonl"
SCAN_ROOTS_ENV = "SCAN_ROOTS"


class ScanConfig(BaseModel):
    """Immutable settings for one scan invocation.

    A scan never reads ambient state: everything it needs is on this value,
    so repeated or concurrent scans with different settings cannot interfere.
    """

    model_config = ConfigDict(frozen=True)

    scan_roots: List[Path] = Field(
        default_factory=list, description="Root directories to inventory"
    )
    ignore_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS),
        description="Path segments that are never treated as project content",
    )
    extra_ignore_patterns: List[str] = Field(
        default_factory=list,
        description="Additional ignore segments appended to ignore_patterns",
    )
    snapshot_path: Optional[Path] = Field(
        default=None,
        description="Line-delimited JSON snapshot; None scans without persisting",
    )
    force_update: bool = Field(
        default=False, description="Re-extract every project, ignoring the snapshot"
    )
    max_workers: int = Field(
        default=1, ge=1, le=32, description="Concurrent leaf-project extractions"
    )
    git_timeout: float = Field(
        default=30.0, gt=0, description="Timeout for each git subprocess in seconds"
    )
    # Bounded window keeps git inspection bounded-time; counts and the creation
    # date refer to the newest N commits only.
    git_history_limit: int = Field(
        default=1000, ge=1, description="Most recent commits read per repository"
    )

    @field_validator("scan_roots", mode="before")
    @classmethod
    def convert_roots(cls, v: Any) -> Any:
        """Accept a comma separated string and expand ``~`` in every root."""
        if v is None:
            return []
        if isinstance(v, (str, Path)):
            v = [part for part in str(v).split(",")]
        roots = []
        for item in v:
            text = str(item).strip()
            if text:
                roots.append(Path(text).expanduser())
        return roots

    @field_validator("snapshot_path", mode="before")
    @classmethod
    def convert_snapshot_path(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        if isinstance(v, (str, Path)):
            return Path(v).expanduser()
        raise ValueError(f"Expected str or Path, got {type(v)}")

    @field_validator("ignore_patterns", "extra_ignore_patterns")
    @classmethod
    def normalize_patterns(cls, v: List[str]) -> List[str]:
        return [p.strip() for p in v if p and p.strip()]

    def effective_ignore_patterns(self) -> List[str]:
        """Defaults plus extras, lower-cased, deduplicated, in order."""
        merged = [p.lower() for p in [*self.ignore_patterns, *self.extra_ignore_patterns]]
        return list(dict.fromkeys(merged))

    def with_overrides(self, **kwargs: Any) -> "ScanConfig":
        """Return a validated copy with the given fields replaced.

        ``None`` values are ignored so CLI flags that were not given leave the
        file configuration alone.
        """
        updates = {k: v for k, v in kwargs.items() if v is not None}
        data = self.model_dump()
        data.update(updates)
        return ScanConfig(**data)


class ConfigManager:
    """Loads and saves ScanConfig as JSON."""

    DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.json"

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        self._config: Optional[ScanConfig] = None

    def load(self) -> ScanConfig:
        """Load configuration from file, falling back to defaults.

        Roots missing from the file come from the ``SCAN_ROOTS`` environment
        variable, which may itself be set by a ``.env`` file next to the config.
        """
        load_dotenv(self.config_path.parent / ".env", override=False)

        data: dict = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    raise ValueError("top-level JSON value must be an object")
                data = loaded
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")

        if not data.get("scan_roots"):
            env_roots = os.environ.get(SCAN_ROOTS_ENV, "")
            if env_roots.strip():
                data["scan_roots"] = env_roots

        data.setdefault("snapshot_path", str(DEFAULT_SNAPSHOT_PATH))

        try:
            self._config = ScanConfig(**data)
        except Exception as e:
            raise ValueError(f"Invalid configuration in {self.config_path}: {e}")
        return self._config

    def save(self, config: Optional[ScanConfig] = None) -> None:
        """Write configuration as pretty JSON, creating the parent directory."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump(config.model_dump(mode="json"), f, indent=2)
        self._config = config

    def get_config(self) -> ScanConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load()
        if self._config is None:
            raise RuntimeError("Failed to load configuration")
        return self._config
