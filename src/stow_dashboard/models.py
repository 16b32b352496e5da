"""Snapshot record models.

Records are pydantic models with ``extra="allow"`` so that fields written by
older or newer versions of the scanner survive a load/save cycle untouched.
Every declared field has a default, which is what a consumer should assume
when a legacy line does not carry it.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_serializer,
    model_validator,
)

UNKNOWN_IDENTITY = "Unknown"
UNKNOWN_BRANCH = "unknown"


class GitInfo(BaseModel):
    """Repository summary for a project directory.

    ``git_detected`` is the discriminator: when False the record serialises to
    ``{"git_detected": false}``, plus ``git_error`` if inspection blew up.
    """

    model_config = ConfigDict(extra="allow")

    git_detected: bool = Field(default=False, description="Directory is a git repository")
    current_user: str = Field(default=UNKNOWN_IDENTITY, description="Resolved user.name")
    current_email: str = Field(default=UNKNOWN_IDENTITY, description="Resolved user.email")
    total_commits: int = Field(default=0, description="Commits in the history window")
    user_commits: int = Field(
        default=0, description="Window commits authored by the resolved identity"
    )
    project_created: Optional[str] = Field(
        default=None, description="Date of the oldest commit in the window"
    )
    last_total_commit_date: Optional[str] = None
    last_user_commit_date: Optional[str] = None
    remotes: List[str] = Field(default_factory=list, description="Remote URLs")
    current_branch: str = UNKNOWN_BRANCH
    ahead: int = 0
    behind: int = 0
    has_remote_tracking: bool = False
    uncommitted_changes: int = 0
    is_clean: bool = True
    git_error: Optional[str] = None

    @classmethod
    def not_detected(cls, error: Optional[str] = None) -> "GitInfo":
        return cls(git_detected=False, git_error=error)

    @model_serializer(mode="wrap")
    def _serialize(self, handler: Any) -> Dict[str, Any]:
        data = handler(self)
        if not self.git_detected:
            minimal: Dict[str, Any] = {"git_detected": False}
            if self.git_error:
                minimal["git_error"] = self.git_error
            return minimal
        if data.get("git_error") is None:
            data.pop("git_error", None)
        return data


class ProjectRecord(BaseModel):
    """One inventoried project; ``directory`` is the snapshot key."""

    model_config = ConfigDict(extra="allow")

    directory: str = Field(description="Absolute project path")
    created: Optional[str] = None
    last_accessed: Optional[str] = None
    last_modified: Optional[str] = Field(
        default=None, description="Latest mtime under the project; staleness signal"
    )
    project_name: str = ""
    description: Optional[str] = None
    stack: List[str] = Field(default_factory=list)
    file_types: Dict[str, int] = Field(default_factory=dict)
    content_size_bytes: int = 0
    libs_size_bytes: int = 0
    total_size_bytes: int = 0
    credentials: List[str] = Field(default_factory=list)
    git_info: GitInfo = Field(default_factory=GitInfo)

    @field_validator("directory", mode="before")
    @classmethod
    def convert_path(cls, v: Any) -> str:
        if isinstance(v, Path):
            return str(v)
        return v

    @field_validator("git_info", mode="before")
    @classmethod
    def default_git_info(cls, v: Any) -> Any:
        # Legacy lines carry null here
        return {} if v is None else v

    @field_validator("stack", "credentials", mode="before")
    @classmethod
    def dedupe(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return list(dict.fromkeys(v))
        return v

    @model_validator(mode="after")
    def derive_fields(self) -> "ProjectRecord":
        self.total_size_bytes = self.content_size_bytes + self.libs_size_bytes
        if not self.project_name:
            self.project_name = Path(self.directory).name
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectRecord":
        return cls.model_validate(data)
