"""Test the in-memory simulation store."""
import pytest
from runtime.store import SimulationNotFoundError, SimulationStatus, SimulationStore


def test_create_get_update_delete():
    store = SimulationStore()
    sim = store.create("urban-mesh", status=SimulationStatus.COMPLETED,
                       timeline=[{"kind": "position", "timestamp": 0.0}])
    assert store.get(sim.id) == sim

    updated = store.update(sim.id, name="urban-mesh-v2")
    assert updated.name == "urban-mesh-v2"
    assert updated.updated_at >= sim.updated_at
    assert store.list() == [updated]

    store.delete(sim.id)
    with pytest.raises(SimulationNotFoundError):
        store.get(sim.id)


def test_unknown_ids_raise():
    store = SimulationStore()
    with pytest.raises(SimulationNotFoundError, match="not found"):
        store.update("missing", name="x")
    with pytest.raises(SimulationNotFoundError):
        store.delete("missing")
