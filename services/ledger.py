"""
Append-only transfer ledger.

Every successful transfer writes exactly one LedgerEntry here. Entries are
never changed or removed, so the ledger is the audit trail and the source
for reconciling reel counters (the sum of a reel's entry quantities equals
its quantity_used).

Thread Safety:
    - Appends take a short lock around the list append and index update
    - Queries copy the entry list when iteration starts and filter the
      copy outside the lock, so they never block writers for long
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Callable, Iterator, List, Optional, Tuple

from core.events import EventBus
from core.exceptions import InvalidEntryError
from models.ledger import DateRange, LedgerEntry
from logging_config import get_logger


logger = get_logger(__name__)


class LedgerQuery:
    """
    Lazy, restartable view over ledger entries.

    Nothing is read until iteration. Each new iteration takes a fresh
    snapshot, so iterating twice may show entries appended in between.
    Entries come out in timestamp order, ties in append order.
    """

    def __init__(
        self,
        snapshot: Callable[[], List[Tuple[int, LedgerEntry]]],
        reel_id: Optional[str] = None,
        machine_id: Optional[str] = None,
        operator_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
    ):
        self._snapshot = snapshot
        self.reel_id = reel_id
        self.machine_id = machine_id
        self.operator_id = operator_id
        self.date_range = date_range

    def __iter__(self) -> Iterator[LedgerEntry]:
        rows = sorted(self._snapshot(), key=lambda row: (row[1].timestamp, row[0]))
        for _, entry in rows:
            if self._matches(entry):
                yield entry

    def _matches(self, entry: LedgerEntry) -> bool:
        if self.reel_id is not None and entry.reel_id != self.reel_id:
            return False
        if self.machine_id is not None and entry.machine_id != self.machine_id:
            return False
        if self.operator_id is not None and entry.operator_id != self.operator_id:
            return False
        if self.date_range is not None and not self.date_range.contains(entry.timestamp):
            return False
        return True

    def count(self) -> int:
        return sum(1 for _ in self)

    def total_quantity(self) -> int:
        return sum(entry.quantity for entry in self)


class Ledger:
    """
    Append-only sequence of LedgerEntry.

    Reel/machine existence is checked through injected callables so the
    ledger does not own either store.
    """

    def __init__(
        self,
        reel_exists: Callable[[str], bool],
        machine_exists: Callable[[str], bool],
        events: Optional[EventBus] = None,
    ):
        self._reel_exists = reel_exists
        self._machine_exists = machine_exists
        self._events = events

        self._rows: List[Tuple[int, LedgerEntry]] = []
        self._ids: set = set()
        self._reel_refs: Counter = Counter()
        self._machine_refs: Counter = Counter()
        self._sequence = 0
        self._lock = threading.Lock()

    def append(self, entry: LedgerEntry) -> str:
        """
        Append one entry.

        Returns:
            The entry id

        Raises:
            InvalidEntryError: Non-positive or non-integer quantity, unknown
                reel or machine, or a duplicate entry id
        """
        quantity = entry.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidEntryError(f"quantity must be a positive integer, got {quantity!r}", entry.id)
        if not self._reel_exists(entry.reel_id):
            raise InvalidEntryError(f"unknown reel {entry.reel_id}", entry.id)
        if not self._machine_exists(entry.machine_id):
            raise InvalidEntryError(f"unknown machine {entry.machine_id}", entry.id)

        with self._lock:
            if entry.id in self._ids:
                raise InvalidEntryError("duplicate entry id", entry.id)
            self._sequence += 1
            self._rows.append((self._sequence, entry))
            self._ids.add(entry.id)
            self._reel_refs[entry.reel_id] += 1
            self._machine_refs[entry.machine_id] += 1

        logger.debug(
            f"Ledger entry {entry.id}: reel={entry.reel_id} machine={entry.machine_id} "
            f"qty={entry.quantity} operator={entry.operator_id}"
        )
        if self._events is not None:
            self._events.publish("ledger.appended", entry.to_dict())
        return entry.id

    def query(
        self,
        reel_id: Optional[str] = None,
        machine_id: Optional[str] = None,
        operator_id: Optional[str] = None,
        date_range: Optional[DateRange] = None,
    ) -> LedgerQuery:
        """Filtered, lazily evaluated view ordered by timestamp ascending."""
        return LedgerQuery(
            self._snapshot,
            reel_id=reel_id,
            machine_id=machine_id,
            operator_id=operator_id,
            date_range=date_range,
        )

    def references_reel(self, reel_id: str) -> bool:
        with self._lock:
            return self._reel_refs[reel_id] > 0

    def references_machine(self, machine_id: str) -> bool:
        with self._lock:
            return self._machine_refs[machine_id] > 0

    def total_for_reel(self, reel_id: str) -> int:
        """Sum of transferred quantities; equals the reel's quantity_used."""
        return self.query(reel_id=reel_id).total_quantity()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def _snapshot(self) -> List[Tuple[int, LedgerEntry]]:
        with self._lock:
            return list(self._rows)
