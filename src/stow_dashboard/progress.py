"""
Progress events emitted by scans, snapshot syncs and legacy cleanup.

Each event is a discriminated record; ``type`` says which of the optional
fields are populated:

- ``updated`` / ``existing``: directory, processing_time
- ``error``: directory, error
- ``complete``: total_time, count
- ``synced`` / ``deleted``: file
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class ProgressEventType(str, Enum):
    UPDATED = "updated"
    EXISTING = "existing"
    ERROR = "error"
    COMPLETE = "complete"
    SYNCED = "synced"
    DELETED = "deleted"


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress notification."""

    type: ProgressEventType
    directory: Optional[str] = None
    processing_time: Optional[float] = None
    error: Optional[str] = None
    total_time: Optional[float] = None
    count: Optional[int] = None
    file: Optional[str] = None
    cancelled: bool = False

    @classmethod
    def updated(cls, directory: str, processing_time: float) -> "ProgressEvent":
        return cls(
            ProgressEventType.UPDATED,
            directory=directory,
            processing_time=round(processing_time, 3),
        )

    @classmethod
    def existing(cls, directory: str, processing_time: float) -> "ProgressEvent":
        return cls(
            ProgressEventType.EXISTING,
            directory=directory,
            processing_time=round(processing_time, 3),
        )

    @classmethod
    def failed(cls, directory: str, error: str) -> "ProgressEvent":
        return cls(ProgressEventType.ERROR, directory=directory, error=error)

    @classmethod
    def complete(
        cls, total_time: float, count: int, cancelled: bool = False
    ) -> "ProgressEvent":
        return cls(
            ProgressEventType.COMPLETE,
            total_time=round(total_time, 3),
            count=count,
            cancelled=cancelled,
        )

    @classmethod
    def synced(cls, file: str) -> "ProgressEvent":
        return cls(ProgressEventType.SYNCED, file=file)

    @classmethod
    def deleted(cls, file: str) -> "ProgressEvent":
        return cls(ProgressEventType.DELETED, file=file)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict with only the populated fields, suitable for JSON streams."""
        data: Dict[str, Any] = {"type": self.type.value}
        for key in ("directory", "processing_time", "error", "total_time", "count", "file"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.cancelled:
            data["cancelled"] = True
        return data


ProgressCallback = Callable[[ProgressEvent], None]


def emit(callback: Optional[ProgressCallback], event: ProgressEvent) -> None:
    """Deliver an event; a failing sink must never break the scan."""
    if callback is None:
        return
    try:
        callback(event)
    except Exception as e:
        logger.warning(f"Progress callback failed on {event.type.value} event: {e}")


class ProgressRecorder:
    """Callback that keeps every event, in order."""

    def __init__(self) -> None:
        self.events: List[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: ProgressEventType) -> List[ProgressEvent]:
        return [event for event in self.events if event.type == event_type]

    def directories(self, event_type: ProgressEventType) -> List[str]:
        return [e.directory for e in self.of_type(event_type) if e.directory]
