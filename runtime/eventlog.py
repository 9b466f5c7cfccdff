from collections import deque
from itertools import islice
from typing import Deque, List, Tuple

from engine.model import PlaybackSnapshot


class ChangeLog:
    """Bounded append-only log of playback snapshots for polling consumers.

    Offsets are monotonic across the whole log lifetime; once capacity is
    exceeded the oldest entries are dropped and ``since`` resumes from the
    oldest retained offset.
    """

    def __init__(self, capacity: int = 1000):
        self._log: Deque[PlaybackSnapshot] = deque(maxlen=capacity)
        self._next_offset = 0

    def __call__(self, snapshot: PlaybackSnapshot) -> None:
        self.append(snapshot)

    @property
    def first_offset(self) -> int:
        return self._next_offset - len(self._log)

    @property
    def next_offset(self) -> int:
        return self._next_offset

    def append(self, snapshot: PlaybackSnapshot) -> int:
        """Append a snapshot and return its offset."""
        self._log.append(snapshot)
        self._next_offset += 1
        return self._next_offset - 1

    def since(self, offset: int, limit: int = 1000) -> Tuple[List[PlaybackSnapshot], int]:
        """Return snapshots starting from offset, up to limit."""
        offset = max(self.first_offset, offset)
        limit = max(0, limit)
        start = offset - self.first_offset
        chunk = list(islice(self._log, start, start + limit))
        return chunk, offset + len(chunk)
