"""
Realtime fanout.

One Broadcaster is built at process start (see main.py) and handed to
request handlers through `get_broadcaster`. Delivery is best-effort:
listeners are called synchronously, nothing is queued or replayed, and a
subscriber that is not connected simply misses the event.
"""
from __future__ import annotations

import enum
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


class RealtimeEventType(str, enum.Enum):
    timeline_posted = "timeline.posted"
    timeline_updated = "timeline.updated"
    timeline_deleted = "timeline.deleted"
    timeline_reacted = "timeline.reacted"
    occurrence_status_changed = "occurrence.status_changed"
    ready = "ready"


@dataclass(frozen=True)
class RealtimeEvent:
    type: RealtimeEventType
    payload: Any = field(default=None)

    def to_dict(self) -> dict:
        return {"type": self.type.value, "payload": self.payload}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    # --- typed constructors, one per event type ---

    @classmethod
    def timeline_posted(cls, post: dict) -> "RealtimeEvent":
        return cls(RealtimeEventType.timeline_posted, {"post": post})

    @classmethod
    def timeline_updated(cls, post: dict) -> "RealtimeEvent":
        return cls(RealtimeEventType.timeline_updated, {"post": post})

    @classmethod
    def timeline_deleted(cls, post_id: int) -> "RealtimeEvent":
        return cls(RealtimeEventType.timeline_deleted, {"post_id": post_id})

    @classmethod
    def timeline_reacted(cls, post_id: int, likes: int, bads: int) -> "RealtimeEvent":
        return cls(
            RealtimeEventType.timeline_reacted,
            {"post_id": post_id, "reactions": {"likes": likes, "bads": bads}},
        )

    @classmethod
    def occurrence_status_changed(
        cls, occurrence_id: int, status: str, timeline_kind: str | None
    ) -> "RealtimeEvent":
        return cls(
            RealtimeEventType.occurrence_status_changed,
            {"occurrence_id": occurrence_id, "status": status, "timeline_kind": timeline_kind},
        )

    @classmethod
    def ready(cls) -> "RealtimeEvent":
        return cls(RealtimeEventType.ready, None)


Listener = Callable[[RealtimeEvent], None]


class Broadcaster:
    """Process-wide publish/subscribe hub with no persistence of missed events."""

    def __init__(self) -> None:
        self._listeners: set[Listener] = set()
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.add(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.discard(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, event: RealtimeEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Realtime listener failed for %s", event.type.value)
