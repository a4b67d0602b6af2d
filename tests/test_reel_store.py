"""
Unit tests for the Reel Store.
"""

from datetime import date

import pytest

from core.events import EventBus
from core.exceptions import (
    InsufficientStockError,
    ReelInUseError,
    ReelNotFoundError,
    ValidationError,
)
from models.reel import Priority
from services.reel_store import ReelStore
from tests.conftest import reel_data


# Fixtures

@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(bus):
    return ReelStore(events=bus)


class TestCreateAndRead:
    """Add-action and lookups."""

    def test_create_parses_payload(self, store):
        reel = store.create(reel_data(quantity_available="15", priority="high"), added_by="op1")

        assert reel.code == "BOB-001"
        assert reel.quantity_available == 15
        assert reel.quantity_used == 0
        assert reel.priority == Priority.HIGH
        assert reel.added_by == "op1"
        assert reel.in_machine is False
        assert reel.entry_date is not None

    def test_create_parses_dates(self, store):
        reel = store.create(reel_data(entry_date="2024-01-15", expiry_date=""))

        assert reel.entry_date == date(2024, 1, 15)
        assert reel.expiry_date is None

    def test_create_requires_fields(self, store):
        with pytest.raises(ValidationError) as exc_info:
            store.create({"code": "X", "material": "PP", "color": "Azul"})
        assert exc_info.value.field_name == "quantity_available"

    def test_create_rejects_negative_stock(self, store):
        with pytest.raises(ValidationError):
            store.create(reel_data(quantity_available=-1))

    def test_create_strips_markup(self, store):
        reel = store.create(reel_data(notes="<b>urgente</b><script>x</script>"))
        assert "<" not in reel.notes
        assert "urgente" in reel.notes

    def test_duplicate_id(self, store):
        store.create(reel_data(id="r1"))
        with pytest.raises(ValidationError):
            store.create(reel_data(id="r1"))

    def test_get_returns_copy(self, store):
        reel = store.create(reel_data())
        copy = store.get(reel.id)
        copy.quantity_available = 999

        assert store.get(reel.id).quantity_available == 15

    def test_get_missing(self, store):
        with pytest.raises(ReelNotFoundError):
            store.get("missing")

    def test_list_by_priority(self, store):
        store.create(reel_data(code="A", priority="alta"))
        store.create(reel_data(code="B", priority="baixa"))

        assert [r.code for r in store.list()] == ["A", "B"]
        assert [r.code for r in store.list(priority=Priority.LOW)] == ["B"]
        assert len(store) == 2


class TestReserveAndDecrement:
    """Atomic check-and-decrement and its reversal."""

    def test_decrement_moves_units_to_used(self, store):
        reel = store.create(reel_data(quantity_available=10))

        reservation = store.reserve_and_decrement(reel.id, 4)

        assert reservation.remaining == 6
        assert reservation.used == 4
        assert reservation.flagged_in_machine is False
        current = store.get(reel.id)
        assert (current.quantity_available, current.quantity_used) == (6, 4)

    def test_insufficient_stock_leaves_reel_untouched(self, store):
        reel = store.create(reel_data(quantity_available=3))

        with pytest.raises(InsufficientStockError) as exc_info:
            store.reserve_and_decrement(reel.id, 5)

        assert exc_info.value.available == 3
        assert exc_info.value.required == 5
        current = store.get(reel.id)
        assert (current.quantity_available, current.quantity_used) == (3, 0)
        assert current.sent_to_machine_at is None

    def test_emptying_flags_in_machine(self, store):
        reel = store.create(reel_data(quantity_available=2))

        reservation = store.reserve_and_decrement(reel.id, 2)

        assert reservation.flagged_in_machine is True
        assert store.get(reel.id).in_machine is True

    def test_release_reverses_exactly(self, store):
        reel = store.create(reel_data(quantity_available=2))
        reservation = store.reserve_and_decrement(reel.id, 2)

        restored = store.release(reservation)

        assert restored.quantity_available == 2
        assert restored.quantity_used == 0
        assert restored.in_machine is False
        assert restored.sent_to_machine_at is None

    def test_release_keeps_other_reservations(self, store):
        reel = store.create(reel_data(quantity_available=10))
        first = store.reserve_and_decrement(reel.id, 3)
        store.reserve_and_decrement(reel.id, 2)

        store.release(first)

        current = store.get(reel.id)
        assert (current.quantity_available, current.quantity_used) == (8, 2)
        assert current.sent_to_machine_at is not None

    def test_missing_reel(self, store):
        with pytest.raises(ReelNotFoundError):
            store.reserve_and_decrement("missing", 1)


class TestUpdateAndRemove:
    """Edit-action and removal policy."""

    def test_update_restocks(self, store):
        reel = store.create(reel_data(quantity_available=1))

        updated = store.update(reel.id, {"quantity_available": 40, "location": "B2-15"})

        assert updated.quantity_available == 40
        assert updated.location == "B2-15"
        assert updated.updated_at >= reel.updated_at

    def test_update_refuses_lower_stock(self, store):
        reel = store.create(reel_data(quantity_available=15))
        store.reserve_and_decrement(reel.id, 5)

        with pytest.raises(ValidationError):
            store.update(reel.id, {"quantity_available": 0})

        current = store.get(reel.id)
        assert current.quantity_available + current.quantity_used == 15

    def test_update_same_stock_is_allowed(self, store):
        reel = store.create(reel_data(quantity_available=15))

        updated = store.update(reel.id, {"quantity_available": "15", "color": "Azul"})

        assert updated.quantity_available == 15
        assert updated.color == "Azul"

    @pytest.mark.parametrize("value", ["²", "1.5", "dez"])
    def test_update_rejects_non_integer_stock(self, store, value):
        reel = store.create(reel_data())
        with pytest.raises(ValidationError):
            store.update(reel.id, {"quantity_available": value})

    @pytest.mark.parametrize("field_name", ["quantity_used", "in_machine", "id"])
    def test_update_refuses_transfer_fields(self, store, field_name):
        reel = store.create(reel_data())
        with pytest.raises(ValidationError):
            store.update(reel.id, {field_name: 1})

    def test_update_missing(self, store):
        with pytest.raises(ReelNotFoundError):
            store.update("missing", {"color": "Azul"})

    def test_remove_unreferenced(self, store):
        reel = store.create(reel_data())
        store.set_reference_check(lambda reel_id: False)

        store.remove(reel.id)

        assert not store.exists(reel.id)
        with pytest.raises(ReelNotFoundError):
            store.remove(reel.id)

    def test_remove_referenced_is_conflict(self, store):
        reel = store.create(reel_data())
        store.set_reference_check(lambda reel_id: True)

        with pytest.raises(ReelInUseError):
            store.remove(reel.id)
        assert store.exists(reel.id)

    def test_hard_delete_allowed(self):
        store = ReelStore(allow_hard_delete=True)
        reel = store.create(reel_data())
        store.set_reference_check(lambda reel_id: True)

        store.remove(reel.id)

        assert not store.exists(reel.id)


class TestEvents:
    """Committed mutations are published."""

    def test_mutations_publish(self, store, bus):
        topics = []
        bus.subscribe("*", lambda event: topics.append(event.topic))

        reel = store.create(reel_data())
        store.reserve_and_decrement(reel.id, 1)
        store.update(reel.id, {"color": "Azul"})
        store.remove(reel.id)

        assert topics == ["reel.created", "reel.stock_changed", "reel.updated", "reel.removed"]

    def test_failed_decrement_publishes_nothing(self, store, bus):
        reel = store.create(reel_data(quantity_available=1))
        topics = []
        bus.subscribe("*", lambda event: topics.append(event.topic))

        with pytest.raises(InsufficientStockError):
            store.reserve_and_decrement(reel.id, 2)

        assert topics == []
