import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class SimulationStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class Simulation:
    id: str
    name: str
    status: SimulationStatus
    scenario_id: Optional[str] = None
    priority: int = 0
    timeline: Optional[List[Dict[str, Any]]] = None  # raw result events
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SimulationNotFoundError(KeyError):
    """Raised when no simulation exists for an id."""

    def __init__(self, simulation_id: str):
        self.simulation_id = simulation_id
        super().__init__(simulation_id)

    def __str__(self) -> str:
        return f"Simulation '{self.simulation_id}' not found"


class SimulationStore:
    """In-memory storage of simulations keyed by id."""

    def __init__(self):
        self._items: Dict[str, Simulation] = {}
        self._lock = threading.Lock()

    def create(self, name: str, status: SimulationStatus = SimulationStatus.QUEUED,
               scenario_id: Optional[str] = None, priority: int = 0,
               timeline: Optional[List[Dict[str, Any]]] = None) -> Simulation:
        sim = Simulation(id=str(uuid.uuid4()), name=name, status=status,
                         scenario_id=scenario_id, priority=priority, timeline=timeline)
        with self._lock:
            self._items[sim.id] = sim
        logger.info("Created simulation %s (%s)", sim.id, sim.status.value)
        return sim

    def get(self, simulation_id: str) -> Simulation:
        with self._lock:
            try:
                return self._items[simulation_id]
            except KeyError:
                raise SimulationNotFoundError(simulation_id) from None

    def list(self) -> List[Simulation]:
        with self._lock:
            return sorted(self._items.values(), key=lambda s: s.created_at)

    def update(self, simulation_id: str, **changes: Any) -> Simulation:
        with self._lock:
            if simulation_id not in self._items:
                raise SimulationNotFoundError(simulation_id)
            sim = replace(self._items[simulation_id], updated_at=datetime.now(timezone.utc), **changes)
            self._items[simulation_id] = sim
            return sim

    def delete(self, simulation_id: str) -> None:
        with self._lock:
            if self._items.pop(simulation_id, None) is None:
                raise SimulationNotFoundError(simulation_id)
        logger.info("Deleted simulation %s", simulation_id)
