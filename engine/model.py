import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import MalformedInputError

Timestamp = Union[int, float, datetime, str]


class TransportState(Enum):
    """Transport state of the playback engine"""
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


def to_seconds(value: Timestamp) -> float:
    """Normalize a timestamp to float seconds.

    Numbers are taken as seconds, datetimes (naive ones as UTC) and
    ISO-8601 strings as absolute points in time.
    """
    if isinstance(value, bool):
        raise MalformedInputError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        seconds = value.timestamp()
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise MalformedInputError(f"Unparseable timestamp: {value!r}") from None
        return to_seconds(parsed)
    else:
        raise MalformedInputError(f"Invalid timestamp type: {type(value).__name__}")
    if not math.isfinite(seconds):
        raise MalformedInputError(f"Timestamp must be finite, got {value!r}")
    return seconds


@dataclass(frozen=True)
class Event:
    kind: str
    timestamp: float  # seconds
    payload: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None  # "node" or "unit"

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Event":
        """Build an event from a plain mapping (API body, stored result)."""
        if not isinstance(raw, Mapping):
            raise MalformedInputError(f"Event must be a mapping, got {type(raw).__name__}")
        if "timestamp" not in raw:
            raise MalformedInputError("Event is missing 'timestamp'")
        kind = raw.get("kind", raw.get("event_type"))
        if not isinstance(kind, str) or not kind:
            raise MalformedInputError("Event is missing 'kind'")
        payload = raw.get("payload", raw.get("data")) or {}
        if not isinstance(payload, Mapping):
            raise MalformedInputError("Event payload must be a mapping")
        return cls(
            kind=kind,
            timestamp=to_seconds(raw["timestamp"]),
            payload=dict(payload),
            id=raw.get("id"),
            entity_id=raw.get("entity_id"),
            entity_type=raw.get("entity_type"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "timestamp": self.timestamp,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type,
            "payload": self.payload,
        }


def coerce_event(raw: Union[Event, Mapping[str, Any]]) -> Event:
    if isinstance(raw, Event):
        seconds = to_seconds(raw.timestamp)
        if type(raw.timestamp) is float:
            return raw
        # built directly with an int, datetime or string timestamp
        return replace(raw, timestamp=seconds)
    return Event.from_dict(raw)


@dataclass(frozen=True)
class Timeline:
    """Events of one simulation run in ascending timestamp order.

    Ties keep their input order. Offsets from ``start_time`` are computed
    once here so that seeking never rescans the events.
    """
    events: Tuple[Event, ...] = ()
    start_time: float = 0.0
    end_time: float = 0.0
    offsets: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64),
                                repr=False, compare=False)

    @classmethod
    def build(cls, events: Sequence[Union[Event, Mapping[str, Any]]]) -> "Timeline":
        if isinstance(events, (str, bytes, Mapping)):
            raise MalformedInputError("Events must be a sequence of events")
        try:
            items = list(events)
        except TypeError:
            raise MalformedInputError("Events must be a sequence of events") from None

        parsed = []
        for i, raw in enumerate(items):
            try:
                parsed.append(coerce_event(raw))
            except MalformedInputError as exc:
                raise MalformedInputError(f"Event {i}: {exc}") from exc

        if not parsed:
            return cls()

        # sorted() is stable, equal timestamps keep input order
        ordered = tuple(sorted(parsed, key=lambda e: e.timestamp))
        start = ordered[0].timestamp
        end = ordered[-1].timestamp
        offsets = np.fromiter((e.timestamp - start for e in ordered),
                              dtype=np.float64, count=len(ordered))
        offsets.setflags(write=False)
        return cls(events=ordered, start_time=start, end_time=end, offsets=offsets)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def __len__(self) -> int:
        return len(self.events)

    def index_at(self, time: float) -> int:
        """Index of the last event whose offset is <= time, or -1."""
        return int(np.searchsorted(self.offsets, time, side="right")) - 1

    def first_index_at(self, time: float) -> int:
        """Index of the first event whose offset is >= time."""
        return int(np.searchsorted(self.offsets, time, side="left"))

    def offset_of(self, index: int) -> float:
        return float(self.offsets[index])

    def since(self, offset: int, limit: int = 1000) -> Tuple[Tuple[Event, ...], int]:
        """Return events starting from offset, up to limit."""
        offset = max(0, offset)
        limit = max(0, limit)
        chunk = self.events[offset: offset + limit]
        return chunk, offset + len(chunk)


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Read-only copy of the playback state handed to renderers."""
    state: TransportState
    current_time: float
    speed: float
    active_event_index: int
    duration: float
    event_count: int

    @property
    def is_playing(self) -> bool:
        return self.state is TransportState.PLAYING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_playing": self.is_playing,
            "current_time": self.current_time,
            "speed": self.speed,
            "active_event_index": self.active_event_index,
            "duration": self.duration,
            "event_count": self.event_count,
        }
