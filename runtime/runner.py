import asyncio
import logging
import time
from typing import Callable

from engine.engine import PlaybackEngine

logger = logging.getLogger(__name__)


class PlaybackRunner:
    """Async driver that advances the engine on a fixed frame cadence."""

    def __init__(self, engine: PlaybackEngine, frame_ms: int = 50,
                 clock: Callable[[], float] = time.monotonic):
        self.engine = engine
        self.frame_ms = frame_ms
        self.sleep_s = frame_ms / 1000.0
        self._clock = clock
        self._last: float | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None

    async def start(self):
        """Start the frame loop."""
        if self._task:
            return
        self._last = self._clock()
        self._task = asyncio.create_task(self._loop())
        logger.info("Playback runner started (frame %d ms)", self.frame_ms)

    async def stop(self):
        """Stop the frame loop gracefully."""
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._last = None
        logger.info("Playback runner stopped")

    async def _loop(self):
        while True:
            self.tick()
            await asyncio.sleep(self.sleep_s)

    def tick(self) -> float:
        """Advance the engine by the wall-clock time since the previous tick.

        Returns the elapsed seconds that were applied.
        """
        now = self._clock()
        elapsed = 0.0 if self._last is None else max(0.0, now - self._last)
        self._last = now
        self.engine.advance(elapsed)
        return elapsed
