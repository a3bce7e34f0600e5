"""database.writer – Aggregate Writer

Persists every gateway event twice: once as an immutable record in the
append-only event log and once as an update of the singleton stats document.

Consistency
-----------
The stats update is a plain read-modify-write against ``discordStats/current``
and is **not** transactional.  Two events processed close together may both
read the same counter value and one increment is lost.  Setting
``atomic_counters=True`` replaces the read-modify-write of the counters with
a server-side ``firestore.Increment`` merge, and makes ``bot_ready`` merge
only ``botStatus``, so no update ever writes back a previously read counter.

Failure policy
--------------
:meth:`AggregateWriter.save` never raises.  Any error is logged and the
event's data is dropped; the caller only sees ``False``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
import logging

from google.cloud import firestore

from stats_bridge.database.models import (
    COUNTER_FIELDS,
    EVENTS_COLLECTION,
    STATS_COLLECTION,
    STATS_DOCUMENT,
    EventType,
    coerce_event_type,
    default_stats,
    event_record,
)

__all__ = [
    "AggregateWriter",
    "iso_now",
]

logger = logging.getLogger(__name__)


def iso_now() -> str:
    """UTC wall-clock time as ISO 8601 with millisecond precision and a ``Z`` suffix."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class AggregateWriter:
    """Write event records and fold them into the stats document.

    Parameters
    ----------
    db:
        A ``google.cloud.firestore.Client`` (or anything exposing the same
        ``collection().add()`` / ``collection().document()`` surface).
    events_collection, stats_collection, stats_document:
        Where the log and the singleton live.
    atomic_counters:
        Use ``firestore.Increment`` for counters instead of read-modify-write.
    clock:
        Returns the ``lastUpdate`` string stamped onto ``botStatus``.
    """

    def __init__(
        self,
        db,
        *,
        events_collection: str = EVENTS_COLLECTION,
        stats_collection: str = STATS_COLLECTION,
        stats_document: str = STATS_DOCUMENT,
        atomic_counters: bool = False,
        clock: Callable[[], str] = iso_now,
    ) -> None:
        self._db = db
        self.events_collection = events_collection
        self.stats_collection = stats_collection
        self.stats_document = stats_document
        self.atomic_counters = atomic_counters
        self._clock = clock

    @classmethod
    def from_settings(cls, db, settings) -> "AggregateWriter":
        return cls(
            db,
            events_collection=settings.events_collection,
            stats_collection=settings.stats_collection,
            stats_document=settings.stats_document,
            atomic_counters=settings.atomic_counters,
        )

    # ------------------------------------------------------------------
    # Document references
    # ------------------------------------------------------------------

    @property
    def stats_ref(self):
        return self._db.collection(self.stats_collection).document(self.stats_document)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def save(self, event_type: EventType | str, data: Dict[str, Any]) -> bool:
        """Append the event and update the stats document.

        Returns ``True`` when both writes went through, ``False`` otherwise.
        Errors are logged and swallowed.
        """

        kind = coerce_event_type(event_type)
        if kind is None:
            logger.error("Refusing to save unknown event type %r", event_type)
            return False

        try:
            self._append_event(kind, data)
            self._update_stats(kind, data)
        except Exception as exc:
            logger.error("Failed to save %s event to Firestore: %s", kind.value, exc)
            return False

        logger.info("Saved %s event to Firestore", kind.value)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append_event(self, kind: EventType, data: Dict[str, Any]) -> None:
        record = event_record(kind, data, firestore.SERVER_TIMESTAMP)
        self._db.collection(self.events_collection).add(record)

    def _read_stats(self) -> Dict[str, Any]:
        snapshot = self.stats_ref.get()
        if not snapshot.exists:
            return default_stats()
        return snapshot.to_dict() or default_stats()

    def _update_stats(self, kind: EventType, data: Dict[str, Any]) -> None:
        counter = COUNTER_FIELDS.get(kind)

        if self.atomic_counters:
            # Merge touches only the named field; counters are never rewritten.
            if counter is not None:
                update = {counter: firestore.Increment(1)}
            else:
                update = {"botStatus": {**data, "lastUpdate": self._clock()}}
            self.stats_ref.set(update, merge=True)
            return

        current = self._read_stats()
        merged = dict(current)
        if kind is EventType.BOT_READY:
            merged["botStatus"] = {**data, "lastUpdate": self._clock()}
        else:
            merged[counter] = (current.get(counter) or 0) + 1

        self.stats_ref.set(merged, merge=True)

    # ------------------------------------------------------------------
    # Read side (used by verbs)
    # ------------------------------------------------------------------

    def current_stats(self) -> Dict[str, Any]:
        """Stats document with zero defaults filled in. Errors propagate."""
        stats = default_stats()
        stats.update(self._read_stats())
        return stats

    def recent_events(
        self, *, limit: int = 20, event_type: Optional[EventType] = None
    ) -> list[Dict[str, Any]]:
        """Newest Event Records first. Errors propagate."""
        query = self._db.collection(self.events_collection)
        if event_type is not None:
            query = query.where(filter=firestore.FieldFilter("eventType", "==", event_type.value))
        query = query.order_by("createdAt", direction=firestore.Query.DESCENDING).limit(limit)

        events = []
        for snapshot in query.stream():
            record = snapshot.to_dict() or {}
            record["id"] = snapshot.id
            events.append(record)
        return events
