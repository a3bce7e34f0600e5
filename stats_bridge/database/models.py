"""database.models
===================

Shapes of the documents the bridge keeps in Cloud Firestore.

Collections
-----------
1. ``discordEvents`` – append-only log, one auto-id document per gateway
   event: ``{eventType, data, timestamp, createdAt}``.  Both timestamps are
   server-assigned.
2. ``discordStats`` – holds the singleton ``current`` document with the
   rolling counters and the last known ``botStatus`` snapshot.

The collection and document names are defaults; deployments may override
them through :class:`stats_bridge.config.Settings`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

EVENTS_COLLECTION = "discordEvents"
STATS_COLLECTION = "discordStats"
STATS_DOCUMENT = "current"


class EventType(str, Enum):
    BOT_READY = "bot_ready"
    MESSAGE = "message"
    MEMBER_JOIN = "member_join"
    MEMBER_LEAVE = "member_leave"


# Counter bumped by each event type; bot_ready only replaces botStatus.
COUNTER_FIELDS: Dict[EventType, str] = {
    EventType.MESSAGE: "totalMessages",
    EventType.MEMBER_JOIN: "totalMembersJoined",
    EventType.MEMBER_LEAVE: "totalMembersLeft",
}


def default_stats() -> Dict[str, Any]:
    """Zero-valued stats document used when ``current`` does not exist yet."""
    return {
        "totalMessages": 0,
        "totalMembersJoined": 0,
        "totalMembersLeft": 0,
    }


def event_record(event_type: EventType, data: Dict[str, Any], timestamp: Any) -> Dict[str, Any]:
    """Build an Event Record; ``timestamp`` is normally the server sentinel."""
    return {
        "eventType": event_type.value,
        "data": data,
        "timestamp": timestamp,
        "createdAt": timestamp,
    }


def coerce_event_type(value: Any) -> Optional[EventType]:
    """Return the matching :class:`EventType` or ``None`` for unknown tags."""
    if isinstance(value, EventType):
        return value
    try:
        return EventType(value)
    except ValueError:
        return None
