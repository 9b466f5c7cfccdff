import logging
from typing import Any, Mapping, Optional, Sequence, Union

from engine.engine import PlaybackEngine
from engine.model import Event
from .eventlog import ChangeLog
from .runner import PlaybackRunner

logger = logging.getLogger(__name__)


class PlaybackSession:
    """One active replay: engine, its change log and its driving loop."""

    def __init__(self, events: Sequence[Union[Event, Mapping[str, Any]]],
                 simulation_id: Optional[str] = None, frame_ms: int = 50,
                 changelog_capacity: int = 1000, driver_enabled: bool = True):
        self.simulation_id = simulation_id
        self.engine = PlaybackEngine()
        self.changes = ChangeLog(changelog_capacity)
        self._unsubscribe = self.engine.subscribe(self.changes)
        # load after subscribing so the initial state is the first change
        self.engine.load(events)
        self.runner = PlaybackRunner(self.engine, frame_ms=frame_ms)
        self.driver_enabled = driver_enabled

    async def open(self):
        if self.driver_enabled:
            await self.runner.start()
        logger.info("Playback session opened for %s", self.simulation_id or "ad-hoc timeline")

    async def close(self):
        await self.runner.stop()
        self._unsubscribe()
        self.engine.reset()
        logger.info("Playback session closed for %s", self.simulation_id or "ad-hoc timeline")
