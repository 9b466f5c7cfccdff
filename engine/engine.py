import logging
import math
import threading
from typing import Any, Callable, List, Mapping, Sequence, Union

from .errors import InvalidArgumentError
from .model import Event, PlaybackSnapshot, Timeline, TransportState

logger = logging.getLogger(__name__)

Subscriber = Callable[[PlaybackSnapshot], None]


def _finite(value: Any, name: str) -> float:
    """Return value as a finite float or raise InvalidArgumentError."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgumentError(f"{name} must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidArgumentError(f"{name} must be finite, got {value!r}")
    return value


class PlaybackEngine:
    """Transport controls over one loaded timeline.

    The engine owns the timeline and the playback state and keeps
    ``current_time`` and ``active_event_index`` consistent under every
    operation. It never runs a clock of its own: a driving loop calls
    ``advance`` with elapsed wall-clock seconds.

    All mutating operations hold one lock, readers get immutable
    snapshots, and subscribers are notified outside the lock whenever an
    operation changed the state.
    """

    def __init__(self, events: Sequence[Union[Event, Mapping[str, Any]]] = ()):
        self._timeline = Timeline()
        self._state = TransportState.STOPPED
        self._current_time = 0.0
        self._speed = 1.0
        self._active_index = -1
        self._subscribers: List[Subscriber] = []
        self._operation_lock = threading.Lock()
        if events:
            self.load(events)

    # ===== Queries =====

    @property
    def timeline(self) -> Timeline:
        return self._timeline

    def snapshot(self) -> PlaybackSnapshot:
        """Return an immutable copy of the current state."""
        with self._operation_lock:
            return self._snapshot()

    def _snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            state=self._state,
            current_time=self._current_time,
            speed=self._speed,
            active_event_index=self._active_index,
            duration=self._timeline.duration,
            event_count=len(self._timeline),
        )

    # ===== Subscriptions =====

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback for state changes and return an unsubscribe function."""
        with self._operation_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._operation_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _mutate(self, operation: Callable[[], None]) -> PlaybackSnapshot:
        """Run operation under the lock and notify subscribers if state changed."""
        with self._operation_lock:
            before = self._snapshot()
            timeline = self._timeline
            operation()
            after = self._snapshot()
            changed = after != before or timeline is not self._timeline
            subscribers = list(self._subscribers)

        if changed:
            for callback in subscribers:
                try:
                    callback(after)
                except Exception:
                    logger.exception("Playback subscriber %r failed", callback)
        return after

    # ===== Timeline lifecycle =====

    def load(self, events: Sequence[Union[Event, Mapping[str, Any]]]) -> PlaybackSnapshot:
        """Replace the timeline with events and reset the playback state.

        Raises:
            MalformedInputError: If any event cannot be parsed. The
                previously loaded timeline is kept.
        """
        timeline = Timeline.build(events)

        def _load() -> None:
            self._timeline = timeline
            self._state = TransportState.STOPPED
            self._speed = 1.0
            self._set_time(0.0)

        snap = self._mutate(_load)
        logger.info("Loaded timeline with %d events (duration %.3fs)",
                    len(timeline), timeline.duration)
        return snap

    def reset(self) -> PlaybackSnapshot:
        """Discard the loaded timeline."""
        snap = self.load(())
        logger.info("Timeline discarded")
        return snap

    # ===== Transport =====

    def play(self) -> PlaybackSnapshot:
        """Start playback. Does nothing on an empty timeline."""
        def _play() -> None:
            if len(self._timeline) == 0:
                return
            self._state = TransportState.PLAYING

        return self._mutate(_play)

    def pause(self) -> PlaybackSnapshot:
        def _pause() -> None:
            if self._state is TransportState.PLAYING:
                self._state = TransportState.PAUSED

        return self._mutate(_pause)

    def stop(self) -> PlaybackSnapshot:
        def _stop() -> None:
            self._state = TransportState.STOPPED
            self._set_time(0.0)

        return self._mutate(_stop)

    def seek_to(self, time: float) -> PlaybackSnapshot:
        """Move to a logical time, clamped to [0, duration]."""
        target = _finite(time, "time")
        return self._mutate(lambda: self._set_time(target))

    def step_forward(self) -> PlaybackSnapshot:
        """Move to the next distinct event time, if any."""
        def _forward() -> None:
            nxt = self._active_index + 1
            if nxt >= len(self._timeline):
                return
            self._set_time(self._timeline.offset_of(nxt))

        return self._mutate(_forward)

    def step_backward(self) -> PlaybackSnapshot:
        """Move to the previous distinct event time, if any."""
        def _backward() -> None:
            if self._active_index < 0:
                return
            tl = self._timeline
            first = tl.first_index_at(tl.offset_of(self._active_index))
            if first == 0:
                return
            self._set_time(tl.offset_of(first - 1))

        return self._mutate(_backward)

    def set_speed(self, multiplier: float) -> PlaybackSnapshot:
        """Set the playback speed multiplier.

        Raises:
            InvalidArgumentError: If multiplier is not a positive number.
        """
        speed = _finite(multiplier, "speed")
        if speed <= 0.0:
            raise InvalidArgumentError(f"Speed must be positive, got {multiplier}")

        def _speed() -> None:
            self._speed = speed

        snap = self._mutate(_speed)
        logger.debug("Playback speed set to %sx", speed)
        return snap

    def advance(self, elapsed: float) -> PlaybackSnapshot:
        """Advance playback by elapsed wall-clock seconds scaled by speed.

        Only has an effect while playing. Reaching the end of the timeline
        pauses playback and keeps the final time and event.

        Raises:
            InvalidArgumentError: If elapsed is negative or not finite.
        """
        delta = _finite(elapsed, "elapsed")
        if delta < 0.0:
            raise InvalidArgumentError(f"Cannot advance time backwards: {elapsed}")

        def _advance() -> None:
            if self._state is not TransportState.PLAYING:
                return
            duration = self._timeline.duration
            target = self._current_time + delta * self._speed
            if target >= duration:
                self._set_time(duration)
                self._state = TransportState.PAUSED
                logger.info("Playback reached end of timeline at %.3fs", duration)
            else:
                self._set_time(target)

        return self._mutate(_advance)

    def _set_time(self, time: float) -> None:
        """Set current time (clamped) and the matching active event index."""
        time = min(max(time, 0.0), self._timeline.duration)
        self._current_time = time
        self._active_index = self._timeline.index_at(time)
