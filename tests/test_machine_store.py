"""
Unit tests for the Machine Store.
"""

import pytest

from core.exceptions import MachineInUseError, MachineNotFoundError, ValidationError
from services.machine_store import MachineStore


# Fixtures

@pytest.fixture
def store():
    return MachineStore()


class TestMachineStore:
    """CRUD, toggling and assignment."""

    def test_create_defaults(self, store):
        machine = store.create({"name": "Extrusora 1", "operator_id": "op1"})

        assert machine.name == "Extrusora 1"
        assert machine.active is False
        assert machine.assigned_reel_id is None
        assert machine.operator_id == "op1"

    def test_create_requires_name(self, store):
        with pytest.raises(ValidationError):
            store.create({"name": "  "})

    def test_assign_reports_previous(self, store):
        machine = store.create({"name": "M1"})

        assert store.assign_reel(machine.id, "r1") is None
        assert store.assign_reel(machine.id, "r2") == "r1"
        assert store.assign_reel(machine.id, None) == "r2"
        assert store.get(machine.id).assigned_reel_id is None

    def test_assign_missing_machine(self, store):
        with pytest.raises(MachineNotFoundError):
            store.assign_reel("missing", "r1")

    def test_update_refuses_assignment(self, store):
        machine = store.create({"name": "M1"})
        with pytest.raises(ValidationError):
            store.update(machine.id, {"assigned_reel_id": "r1"})

    def test_update_fields(self, store):
        machine = store.create({"name": "M1"})

        updated = store.update(machine.id, {"name": "Corte 2", "active": "true"})

        assert updated.name == "Corte 2"
        assert updated.active is True

    def test_toggle_active(self, store):
        machine = store.create({"name": "M1"})

        assert store.toggle_active(machine.id).active is True
        assert store.toggle_active(machine.id).active is False

    def test_list_sorted_and_filtered(self, store):
        store.create({"name": "b-line", "active": True})
        store.create({"name": "A-line"})

        assert [m.name for m in store.list()] == ["A-line", "b-line"]
        assert [m.name for m in store.list(active=True)] == ["b-line"]

    def test_find_by_reel(self, store):
        machine = store.create({"name": "M1"})
        store.assign_reel(machine.id, "r1")

        assert [m.id for m in store.find_by_reel("r1")] == [machine.id]
        assert store.find_by_reel("r2") == []

    def test_remove_referenced_is_conflict(self, store):
        machine = store.create({"name": "M1"})
        store.set_reference_check(lambda machine_id: True)

        with pytest.raises(MachineInUseError):
            store.remove(machine.id)
        assert store.exists(machine.id)

    def test_remove(self, store):
        machine = store.create({"name": "M1"})

        removed = store.remove(machine.id)

        assert removed.id == machine.id
        assert len(store) == 0
