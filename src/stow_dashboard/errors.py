"""Exceptions raised by the Stow Dashboard scanner."""

from pathlib import Path
from typing import Union


class StowError(Exception):
    """Base class for Stow Dashboard errors."""

    pass


class SnapshotWriteError(StowError):
    """Raised when the snapshot file cannot be written at the end of a scan."""

    def __init__(self, path: Union[str, Path], reason: str):
        super().__init__(f"Failed to write snapshot {path}: {reason}")
        self.path = Path(path)
        self.reason = reason
