"""ISO-8601 helpers for snapshot timestamps.

Snapshot timestamps are UTC strings with millisecond precision and a ``Z``
suffix. Staleness comparisons are done on whole milliseconds so that the
nanosecond resolution of the filesystem never outranks the stored value.
"""

from datetime import datetime, timezone
from typing import Any, Optional

NANOS_PER_MILLI = 1_000_000


def nanos_to_millis(epoch_ns: int) -> int:
    """Floor a nanosecond epoch timestamp to whole milliseconds."""
    return epoch_ns // NANOS_PER_MILLI


def millis_to_iso(epoch_ms: int) -> str:
    """Format epoch milliseconds as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    seconds, millis = divmod(epoch_ms, 1000)
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}Z"


def nanos_to_iso(epoch_ns: int) -> str:
    return millis_to_iso(nanos_to_millis(epoch_ns))


def iso_to_millis(value: Any) -> Optional[int]:
    """Parse an ISO-8601 string back to epoch milliseconds.

    Naive timestamps are taken as UTC. Returns None for anything unparseable.
    """
    if not isinstance(value, str) or not value:
        return None

    candidate = value
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(candidate)
    except ValueError:
        return None

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return round(moment.timestamp() * 1000)
