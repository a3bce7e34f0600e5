"""verbs.py – Read-side primitives

Thin helpers shared by the HTTP surface and the CLI.  They only read from
Firestore through the :class:`~stats_bridge.database.writer.AggregateWriter`
and convert the results into JSON-friendly structures.  Firestore errors
propagate to the caller, which decides how to surface them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from stats_bridge.database.models import EventType, coerce_event_type

__all__ = [
    "MAX_EVENTS",
    "get_stats",
    "list_events",
    "to_jsonable",
]

MAX_EVENTS = 100


def to_jsonable(value: Any) -> Any:
    """Recursively convert Firestore values (timestamps) into JSON types."""
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def get_stats(writer) -> Dict[str, Any]:
    """Return the current stats document (zero defaults when absent)."""
    return to_jsonable(writer.current_stats())


def list_events(
    writer,
    *,
    limit: int = 20,
    event_type: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Return the newest event records, optionally filtered by type.

    Raises
    ------
    ValueError
        ``limit`` outside ``1..MAX_EVENTS`` or an unknown ``event_type``.
    """

    if not 1 <= limit <= MAX_EVENTS:
        raise ValueError(f"limit must be between 1 and {MAX_EVENTS}")

    kind: Optional[EventType] = None
    if event_type:
        kind = coerce_event_type(event_type)
        if kind is None:
            allowed = ", ".join(e.value for e in EventType)
            raise ValueError(f"unknown event type {event_type!r} (expected one of: {allowed})")

    return to_jsonable(writer.recent_events(limit=limit, event_type=kind))
