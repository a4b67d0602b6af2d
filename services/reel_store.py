"""
Reel store with per-reel locking.

Holds every reel and its stock counters. The one operation that must be
atomic under concurrent transfers is reserve_and_decrement(): the check
"enough stock?" and the decrement happen under the reel's own lock, so two
transfers on the same reel can never both see the same stock.

Thread Safety:
    - self._lock guards the reel and lock tables (insert/remove/lookup)
    - each reel has its own threading.Lock guarding its fields
    - lock order is always table lock released, then reel lock taken;
      the table lock is only re-taken inside a reel lock for removal
    - callers receive copies, never the stored Reel instance

Usage:
    store = ReelStore(events=bus)
    reel = store.create({"code": "BOB-001", ...})
    reservation = store.reserve_and_decrement(reel.id, 5)
    ...
    store.release(reservation)   # compensation
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional

from core.events import EventBus
from core.exceptions import (
    InsufficientStockError,
    ReelInUseError,
    ReelNotFoundError,
    ValidationError,
)
from models.reel import Priority, Reel, clean_reel_fields
from logging_config import get_logger


logger = get_logger(__name__)

# Fields only a transfer (or its compensation) may change
TRANSFER_OWNED_FIELDS = ("quantity_used", "in_machine", "sent_to_machine_at", "id")


@dataclass(frozen=True)
class StockReservation:
    """
    Receipt for one successful decrement.

    Holds exactly what the decrement changed so release() can reverse
    those deltas without clobbering concurrent transfers on the same reel.
    """

    reel_id: str
    amount: int
    remaining: int
    """quantity_available right after the decrement."""

    used: int
    """quantity_used right after the decrement."""

    flagged_in_machine: bool
    """True if this decrement emptied the reel and set in_machine."""

    sent_at: datetime
    previous_sent_at: Optional[datetime]


class ReelStore:
    """
    In-memory keyed store of reels.

    Removal of a reel referenced by the ledger is refused unless
    allow_hard_delete is set. The reference check is injected with
    set_reference_check() because the ledger itself validates against
    this store.
    """

    def __init__(
        self,
        events: Optional[EventBus] = None,
        allow_hard_delete: bool = False,
        max_text_length: int = 500,
    ):
        self._reels: Dict[str, Reel] = {}
        self._reel_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

        self._events = events
        self._allow_hard_delete = allow_hard_delete
        self._max_text_length = max_text_length
        self._is_referenced: Optional[Callable[[str], bool]] = None

    def set_reference_check(self, is_referenced: Callable[[str], bool]) -> None:
        """Install the 'does the ledger reference this reel?' callback."""
        self._is_referenced = is_referenced

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, reel_id: str) -> Reel:
        """
        Return a copy of the reel.

        Raises:
            ReelNotFoundError: If no reel has this id
        """
        with self._locked(reel_id) as reel:
            return reel.copy()

    def exists(self, reel_id: str) -> bool:
        with self._lock:
            return reel_id in self._reels

    def list(self, priority: Optional[Priority] = None) -> List[Reel]:
        """Copies of all reels, in insertion order, optionally by priority."""
        with self._lock:
            ids = list(self._reels)

        reels = []
        for reel_id in ids:
            try:
                reel = self.get(reel_id)
            except ReelNotFoundError:
                continue  # removed since the id snapshot
            if priority is None or reel.priority == priority:
                reels.append(reel)
        return reels

    def __len__(self) -> int:
        with self._lock:
            return len(self._reels)

    # =========================================================================
    # STOCK MOVEMENT
    # =========================================================================

    def reserve_and_decrement(self, reel_id: str, amount: int) -> StockReservation:
        """
        Atomically move `amount` units from available to used.

        If the reel is emptied it is flagged as in machine. On any failure
        nothing is changed.

        Raises:
            ReelNotFoundError: If no reel has this id
            InsufficientStockError: If quantity_available < amount
        """
        with self._locked(reel_id) as reel:
            if reel.quantity_available < amount:
                raise InsufficientStockError(reel_id, amount, reel.quantity_available)

            now = datetime.now(timezone.utc)
            previous_sent_at = reel.sent_to_machine_at

            reel.quantity_available -= amount
            reel.quantity_used += amount
            reel.sent_to_machine_at = now
            reel.updated_at = now

            flagged = False
            if reel.quantity_available == 0 and not reel.in_machine:
                reel.in_machine = True
                flagged = True

            reservation = StockReservation(
                reel_id=reel_id,
                amount=amount,
                remaining=reel.quantity_available,
                used=reel.quantity_used,
                flagged_in_machine=flagged,
                sent_at=now,
                previous_sent_at=previous_sent_at,
            )
            payload = reel.to_dict()

        logger.debug(
            f"Reserved {amount} from reel {reel_id}: "
            f"available={reservation.remaining}, used={reservation.used}"
        )
        self._publish("reel.stock_changed", payload)
        return reservation

    def release(self, reservation: StockReservation) -> Reel:
        """
        Reverse one reservation (compensation).

        Only the deltas recorded in the receipt are undone.

        Raises:
            ReelNotFoundError: If the reel was hard-deleted in between
        """
        with self._locked(reservation.reel_id) as reel:
            reel.quantity_available += reservation.amount
            reel.quantity_used -= reservation.amount

            if reservation.flagged_in_machine:
                reel.in_machine = False
            if reel.sent_to_machine_at == reservation.sent_at:
                reel.sent_to_machine_at = reservation.previous_sent_at

            reel.updated_at = datetime.now(timezone.utc)
            restored = reel.copy()
            payload = reel.to_dict()

        logger.info(
            f"Released {reservation.amount} back to reel {reservation.reel_id}: "
            f"available={restored.quantity_available}, used={restored.quantity_used}"
        )
        self._publish("reel.stock_changed", payload)
        return restored

    def set_in_machine(self, reel_id: str, in_machine: bool) -> bool:
        """
        Set the reel's in-machine flag.

        Returns:
            The previous flag value
        """
        with self._locked(reel_id) as reel:
            previous = reel.in_machine
            if previous == in_machine:
                return previous
            reel.in_machine = in_machine
            reel.updated_at = datetime.now(timezone.utc)
            payload = reel.to_dict()

        self._publish("reel.updated", payload)
        return previous

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(self, data: Dict, added_by: Optional[str] = None) -> Reel:
        """
        Register a new reel from an add-action payload.

        Raises:
            ValidationError: On a bad or missing field, or a duplicate id
        """
        reel = Reel.from_dict(data, added_by=added_by, max_text_length=self._max_text_length)

        with self._lock:
            if reel.id in self._reels:
                raise ValidationError("id", f"reel {reel.id} already exists")
            self._reels[reel.id] = reel
            self._reel_locks[reel.id] = threading.Lock()
            created = reel.copy()

        logger.info(f"Reel created: {created.code} ({created.id}), {created.quantity_available} units")
        self._publish("reel.created", created.to_dict())
        return created

    def update(self, reel_id: str, patch: Dict) -> Reel:
        """
        Apply an edit-action.

        Transfer-owned fields (quantity_used, in_machine, ...) are refused.
        quantity_available may only grow (restock); stock leaves a reel
        through transfers alone.

        Raises:
            ReelNotFoundError: If no reel has this id
            ValidationError: On a bad field, or a lower quantity_available
        """
        for name in TRANSFER_OWNED_FIELDS:
            if name in patch:
                raise ValidationError(name, "cannot be edited directly")

        changes = clean_reel_fields(patch, partial=True, max_text_length=self._max_text_length)

        with self._locked(reel_id) as reel:
            restock = changes.get("quantity_available")
            if restock is not None and restock < reel.quantity_available:
                raise ValidationError(
                    "quantity_available",
                    f"cannot go below the current {reel.quantity_available}; use a transfer",
                )
            for name, value in changes.items():
                setattr(reel, name, value)
            reel.updated_at = datetime.now(timezone.utc)
            updated = reel.copy()

        logger.info(f"Reel updated: {reel_id} ({', '.join(sorted(changes)) or 'no changes'})")
        self._publish("reel.updated", updated.to_dict())
        return updated

    def remove(self, reel_id: str) -> None:
        """
        Remove a reel.

        Raises:
            ReelNotFoundError: If no reel has this id
            ReelInUseError: If the ledger references it and hard delete is off
        """
        with self._locked(reel_id) as reel:
            if not self._allow_hard_delete and self._is_referenced and self._is_referenced(reel_id):
                raise ReelInUseError(reel_id)
            payload = reel.to_dict()
            with self._lock:
                del self._reels[reel_id]
                del self._reel_locks[reel_id]

        logger.info(f"Reel removed: {reel_id}")
        self._publish("reel.removed", payload)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    @contextmanager
    def _locked(self, reel_id: str) -> Iterator[Reel]:
        """Hold the reel's lock and yield the stored (live) instance."""
        with self._lock:
            lock = self._reel_locks.get(reel_id)
        if lock is None:
            raise ReelNotFoundError(reel_id)

        with lock:
            reel = self._reels.get(reel_id)
            if reel is None:
                # Removed while we waited for the lock
                raise ReelNotFoundError(reel_id)
            yield reel

    def _publish(self, topic: str, payload: Dict) -> None:
        if self._events is not None:
            self._events.publish(topic, payload)
