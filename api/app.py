import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from engine.errors import PlaybackError
from engine.model import PlaybackSnapshot
from runtime.session import PlaybackSession
from runtime.store import Simulation, SimulationNotFoundError, SimulationStatus, SimulationStore
from .config import get_settings
from .logging_config import configure_logging
from .schemas import (
    ChangesResponse,
    EventsResponse,
    LoadRequest,
    PlaybackStateOut,
    SimulationIn,
    SimulationOut,
    SimulationPatch,
    TimelineOut,
)

logger = logging.getLogger(__name__)

store = SimulationStore()
session: PlaybackSession | None = None
# Guards every swap of the global session
_session_lock = asyncio.Lock()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings())
    logger.info("Scenario replay service starting")
    yield
    await close_session()


app = FastAPI(title="Scenario Replay API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PlaybackError)
async def playback_error_handler(request: Request, exc: PlaybackError):
    """Report invalid arguments and malformed input as 400s."""
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(SimulationNotFoundError)
async def simulation_not_found_handler(request: Request, exc: SimulationNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


# ===== Session lifecycle =====

async def open_session(events: Sequence[Dict[str, Any]],
                       simulation_id: Optional[str] = None) -> PlaybackSession:
    """Replace the active session with one replaying events."""
    global session
    settings = get_settings()
    # Build first so malformed input leaves the current session untouched
    new_session = PlaybackSession(
        events,
        simulation_id=simulation_id,
        frame_ms=settings.frame_ms,
        changelog_capacity=settings.changelog_capacity,
        driver_enabled=settings.driver_enabled,
    )
    async with _session_lock:
        await _close_current()
        session = new_session
        await session.open()
        return new_session


async def close_session(simulation_id: Optional[str] = None) -> None:
    """Close the active session, or only the one replaying simulation_id."""
    async with _session_lock:
        if session and (simulation_id is None or session.simulation_id == simulation_id):
            await _close_current()


async def _close_current() -> None:
    global session
    if session:
        closing, session = session, None
        await closing.close()


def _require_session() -> PlaybackSession:
    if not session:
        raise HTTPException(400, "No timeline loaded")
    return session


def _state(snap: PlaybackSnapshot) -> PlaybackStateOut:
    return PlaybackStateOut(**snap.to_dict())


def _simulation_out(sim: Simulation) -> SimulationOut:
    return SimulationOut(
        id=sim.id,
        name=sim.name,
        status=sim.status.value,
        scenario_id=sim.scenario_id,
        priority=sim.priority,
        event_count=len(sim.timeline) if sim.timeline is not None else None,
        created_at=sim.created_at,
        updated_at=sim.updated_at,
    )


@app.get("/")
async def root():
    """API root endpoint."""
    return {
        "message": "Scenario Replay API",
        "docs": "/docs",
        "version": "1.0"
    }


# ===== Simulations =====

@app.post("/simulations", status_code=201)
async def create_simulation(req: SimulationIn) -> SimulationOut:
    """Store a simulation, optionally with its result timeline."""
    timeline = [e.model_dump() for e in req.timeline] if req.timeline is not None else None
    sim = store.create(
        name=req.name,
        status=SimulationStatus(req.status),
        scenario_id=req.scenario_id,
        priority=req.priority,
        timeline=timeline,
    )
    return _simulation_out(sim)


@app.get("/simulations")
async def list_simulations() -> list[SimulationOut]:
    return [_simulation_out(s) for s in store.list()]


@app.get("/simulations/{simulation_id}")
async def get_simulation(simulation_id: str) -> SimulationOut:
    return _simulation_out(store.get(simulation_id))


@app.delete("/simulations/{simulation_id}")
async def delete_simulation(simulation_id: str):
    """Delete a simulation, ending its replay if it is the active one."""
    store.delete(simulation_id)
    await close_session(simulation_id)
    return {"deleted": simulation_id}


@app.patch("/simulations/{simulation_id}")
async def update_simulation(simulation_id: str, req: SimulationPatch) -> SimulationOut:
    """Update a stored simulation's metadata, status or result timeline."""
    changes = req.model_dump(exclude_unset=True)
    if "status" in changes:
        changes["status"] = SimulationStatus(changes["status"])
    sim = store.update(simulation_id, **changes)
    return _simulation_out(sim)


@app.post("/simulations/{simulation_id}/select")
async def select_simulation(simulation_id: str) -> PlaybackStateOut:
    """Load a stored simulation's result timeline for replay."""
    sim = store.get(simulation_id)
    if sim.timeline is None:
        await close_session()
        raise HTTPException(409, f"Simulation '{simulation_id}' has no results to replay")
    s = await open_session(sim.timeline, simulation_id=sim.id)
    return _state(s.engine.snapshot())


# ===== Playback =====

@app.post("/playback/load")
async def load_timeline(req: LoadRequest) -> PlaybackStateOut:
    """Load an ad-hoc event sequence for replay."""
    s = await open_session([e.model_dump() for e in req.events])
    return _state(s.engine.snapshot())


@app.delete("/playback")
async def unload_timeline():
    """Discard the active timeline."""
    await close_session()
    return {"loaded": False}


@app.get("/playback/state")
async def get_playback_state() -> PlaybackStateOut:
    """Get current playback snapshot."""
    return _state(_require_session().engine.snapshot())


@app.get("/playback/timeline")
async def get_timeline() -> TimelineOut:
    s = _require_session()
    tl = s.engine.timeline
    return TimelineOut(
        simulation_id=s.simulation_id,
        start_time=tl.start_time,
        end_time=tl.end_time,
        duration=tl.duration,
        event_count=len(tl),
    )


@app.get("/playback/events")
async def get_events(since: int = Query(0, ge=0),
                     limit: Optional[int] = Query(None, ge=1)) -> EventsResponse:
    """Get timeline events in playback order since offset."""
    s = _require_session()
    limit = min(limit or get_settings().events_page_limit, get_settings().events_page_limit)
    evts, next_offset = s.engine.timeline.since(since, limit)
    return EventsResponse(next_offset=next_offset, events=[e.to_dict() for e in evts])


@app.get("/playback/changes")
async def get_changes(since: int = Query(0, ge=0),
                      limit: int = Query(500, ge=1)) -> ChangesResponse:
    """Get playback state changes since offset."""
    s = _require_session()
    snaps, next_offset = s.changes.since(since, limit)
    return ChangesResponse(next_offset=next_offset, changes=[_state(x) for x in snaps])


@app.post("/playback/play")
async def play() -> PlaybackStateOut:
    return _state(_require_session().engine.play())


@app.post("/playback/pause")
async def pause() -> PlaybackStateOut:
    return _state(_require_session().engine.pause())


@app.post("/playback/stop")
async def stop() -> PlaybackStateOut:
    return _state(_require_session().engine.stop())


@app.post("/playback/step-forward")
async def step_forward() -> PlaybackStateOut:
    return _state(_require_session().engine.step_forward())


@app.post("/playback/step-backward")
async def step_backward() -> PlaybackStateOut:
    return _state(_require_session().engine.step_backward())


@app.post("/playback/seek")
async def seek(time: float) -> PlaybackStateOut:
    """Seek to a logical time in seconds (clamped to the timeline)."""
    return _state(_require_session().engine.seek_to(time))


@app.post("/playback/speed")
async def set_speed(speed: float) -> PlaybackStateOut:
    """Set playback speed (1.0 = normal, higher = faster)."""
    return _state(_require_session().engine.set_speed(speed))


@app.get("/playback/speed")
async def get_speed():
    """Get current playback speed."""
    return {"speed": _require_session().engine.snapshot().speed}


@app.post("/playback/advance")
async def advance(elapsed: float) -> PlaybackStateOut:
    """Advance playback by elapsed wall-clock seconds (headless driving)."""
    return _state(_require_session().engine.advance(elapsed))
