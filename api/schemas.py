from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class EventIn(BaseModel):
    """Simulation event request schema."""
    kind: str = Field(min_length=1)
    timestamp: Union[float, datetime]  # seconds or ISO-8601
    payload: Dict[str, Any] = Field(default_factory=dict)
    id: Optional[str] = None
    entity_id: Optional[str] = None
    entity_type: Optional[Literal["node", "unit"]] = None


class LoadRequest(BaseModel):
    """Ad-hoc timeline load request schema."""
    events: List[EventIn]


class SimulationIn(BaseModel):
    """Simulation create request schema."""
    name: str
    status: Literal["QUEUED", "RUNNING", "COMPLETED", "FAILED", "CANCELLED"] = "QUEUED"
    scenario_id: Optional[str] = None
    priority: int = 0
    timeline: Optional[List[EventIn]] = None


class SimulationPatch(BaseModel):
    """Simulation update request schema."""
    name: Optional[str] = None
    status: Optional[Literal["QUEUED", "RUNNING", "COMPLETED", "FAILED", "CANCELLED"]] = None
    scenario_id: Optional[str] = None
    priority: Optional[int] = None
    timeline: Optional[List[EventIn]] = None


class SimulationOut(BaseModel):
    """Simulation response schema."""
    id: str
    name: str
    status: str
    scenario_id: Optional[str]
    priority: int
    event_count: Optional[int]
    created_at: datetime
    updated_at: datetime


class PlaybackStateOut(BaseModel):
    """Playback snapshot response schema."""
    state: Literal["stopped", "playing", "paused"]
    is_playing: bool
    current_time: float
    speed: float
    active_event_index: int
    duration: float
    event_count: int


class TimelineOut(BaseModel):
    """Loaded timeline metadata response schema."""
    simulation_id: Optional[str]
    start_time: float
    end_time: float
    duration: float
    event_count: int


class EventsResponse(BaseModel):
    """Events response schema."""
    next_offset: int
    events: list[dict]


class ChangesResponse(BaseModel):
    """Playback changes response schema."""
    next_offset: int
    changes: List[PlaybackStateOut]
