"""
Transfer coordinator.

Moves N units of a reel onto a machine as one logical operation across
three independently mutable stores:

    REQUESTED -> VALIDATED -> APPLIED -> RECORDED
    REQUESTED | VALIDATED | APPLIED -> REJECTED

Steps:
    1. VALIDATE  quantity is a positive int, reel and machine exist
    2. APPLY     ReelStore.reserve_and_decrement (the only step-2 mutation,
                 atomic per reel)
    3. RECORD    under the machine's lock: assign the reel to the machine,
                 free the reel it displaced, append the ledger entry

A failure in step 3 is compensated before returning: the assignment is
put back, the displaced reel's flag restored, and the reservation
released. The caller never observes stock that left a reel without a
matching ledger entry.

Thread Safety:
    - Stock checks are serialized per reel inside the ReelStore
    - Assignment + ledger append are serialized per machine here
    - Transfers on different reels and machines run in parallel
    - No retries: a failed store call rejects the transfer immediately

Usage:
    coordinator = TransferCoordinator(reels, machines, ledger)
    result = coordinator.transfer(reel_id, machine_id, 5, operator_id)
    if result.ok:
        print(result.ledger_entry_id, result.reel_remaining_quantity)
    else:
        print(result.error_kind, result.message, result.available)
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from core.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    LedgerAppendFailedError,
    MachineAssignmentFailedError,
    MachineNotFoundError,
    ReelNotFoundError,
    StoreUnavailableError,
    TransferRejectedError,
)
from models.ledger import LedgerEntry
from models.machine import Machine
from models.transfer import (
    TransferErrorKind,
    TransferRequest,
    TransferResult,
    TransferState,
)
from services.ledger import Ledger
from services.machine_store import MachineStore
from services.reel_store import ReelStore, StockReservation
from logging_config import get_logger, get_transfer_logger


logger = get_logger(__name__)

_REJECTION_KINDS = {
    InvalidQuantityError: TransferErrorKind.INVALID_QUANTITY,
    ReelNotFoundError: TransferErrorKind.REEL_NOT_FOUND,
    MachineNotFoundError: TransferErrorKind.MACHINE_NOT_FOUND,
    InsufficientStockError: TransferErrorKind.INSUFFICIENT_STOCK,
}


def _rejection_kind(error: TransferRejectedError) -> TransferErrorKind:
    for error_type, kind in _REJECTION_KINDS.items():
        if isinstance(error, error_type):
            return kind
    raise TypeError(f"No rejection kind for {type(error).__name__}")


class TransferCoordinator:
    """
    Sole writer to the reel store, machine store and ledger during a
    transfer.

    Also owns manual machine assignment and machine removal, since both
    must keep reel in-machine flags in step with machine assignments.
    """

    def __init__(
        self,
        reel_store: ReelStore,
        machine_store: MachineStore,
        ledger: Ledger,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._reels = reel_store
        self._machines = machine_store
        self._ledger = ledger
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._machine_locks: Dict[str, threading.Lock] = {}
        self._machine_locks_lock = threading.Lock()

        logger.info("TransferCoordinator initialized")

    # =========================================================================
    # TRANSFER
    # =========================================================================

    def transfer(
        self,
        reel_id: str,
        machine_id: str,
        quantity: Any,
        operator_id: str,
        notes: Optional[str] = None,
    ) -> TransferResult:
        """
        Move `quantity` units of a reel onto a machine.

        Repeated identical calls each move more stock; there is no
        idempotency key.

        Returns:
            TransferResult in RECORDED or REJECTED state (never raises for
            rejections or compensated failures)
        """
        request = TransferRequest(
            reel_id=reel_id,
            machine_id=machine_id,
            quantity=quantity,
            operator_id=operator_id,
            notes=notes,
        )
        return self.transfer_request(request)

    def transfer_request(self, request: TransferRequest) -> TransferResult:
        """Run one transfer from a prepared request."""
        transfer_id = uuid.uuid4().hex
        tlog = get_transfer_logger(transfer_id)
        state = TransferState.REQUESTED

        tlog.info(
            f"Transfer requested: {request.quantity!r} of reel {request.reel_id} "
            f"-> machine {request.machine_id} by {request.operator_id}"
        )

        # =================================================================
        # STEP 1: VALIDATE
        # =================================================================
        try:
            self._validate(request)
        except TransferRejectedError as e:
            return self._reject(request, state, _rejection_kind(e), e, tlog)
        except StoreUnavailableError as e:
            return self._reject(request, state, TransferErrorKind.STORE_UNAVAILABLE, e, tlog)

        state = TransferState.VALIDATED
        tlog.debug("Validated")

        # =================================================================
        # STEP 2: APPLY (first and only stock mutation)
        # =================================================================
        try:
            reservation = self._reels.reserve_and_decrement(request.reel_id, request.quantity)
        except InsufficientStockError as e:
            return self._reject(
                request, state, TransferErrorKind.INSUFFICIENT_STOCK, e, tlog, available=e.available
            )
        except ReelNotFoundError as e:
            # Removed between validation and apply
            return self._reject(request, state, TransferErrorKind.REEL_NOT_FOUND, e, tlog)
        except StoreUnavailableError as e:
            return self._reject(request, state, TransferErrorKind.STORE_UNAVAILABLE, e, tlog)

        state = TransferState.APPLIED
        tlog.debug(f"Applied: reel now available={reservation.remaining}, used={reservation.used}")

        # =================================================================
        # STEP 3: RECORD (compensated on failure)
        # =================================================================
        with self._machine_lock(request.machine_id):
            try:
                previous_reel_id = self._machines.assign_reel(request.machine_id, request.reel_id)
            except Exception as e:
                tlog.error(f"Machine assignment failed, compensating: {e}", exc_info=True)
                self._compensate(tlog, reservation)
                failure = MachineAssignmentFailedError(
                    f"Could not assign reel to machine: {e}",
                    request.reel_id, request.machine_id, cause=e,
                )
                return self._reject(
                    request, state, TransferErrorKind.MACHINE_ASSIGNMENT_FAILED, failure, tlog
                )

            displaced_reel_id = None
            displaced_was_in_machine = False
            try:
                if previous_reel_id and previous_reel_id != request.reel_id:
                    displaced_reel_id = previous_reel_id
                    displaced_was_in_machine = self._free_reel(displaced_reel_id, tlog)
            except Exception as e:
                tlog.error(f"Freeing displaced reel failed, compensating: {e}", exc_info=True)
                self._compensate(
                    tlog, reservation, request.machine_id, previous_reel_id
                )
                failure = MachineAssignmentFailedError(
                    f"Could not free displaced reel {previous_reel_id}: {e}",
                    request.reel_id, request.machine_id, cause=e,
                )
                return self._reject(
                    request, state, TransferErrorKind.MACHINE_ASSIGNMENT_FAILED, failure, tlog
                )

            entry = LedgerEntry(
                reel_id=request.reel_id,
                machine_id=request.machine_id,
                quantity=request.quantity,
                operator_id=request.operator_id,
                timestamp=self._clock(),
                notes=request.notes,
            )
            try:
                entry_id = self._ledger.append(entry)
            except Exception as e:
                tlog.error(f"Ledger append failed, compensating: {e}", exc_info=True)
                self._compensate(
                    tlog,
                    reservation,
                    request.machine_id,
                    previous_reel_id,
                    displaced_reel_id if displaced_was_in_machine else None,
                )
                failure = LedgerAppendFailedError(
                    f"Could not record the transfer: {e}",
                    request.reel_id, request.machine_id, cause=e,
                )
                return self._reject(
                    request, state, TransferErrorKind.LEDGER_APPEND_FAILED, failure, tlog
                )

        state = TransferState.RECORDED
        tlog.info(
            f"Transfer recorded: entry {entry_id}, reel {request.reel_id} "
            f"available={reservation.remaining}, used={reservation.used}"
        )
        return TransferResult.create_recorded(
            request, entry_id, reservation.remaining, reservation.used
        )

    # =========================================================================
    # MANUAL ASSIGNMENT
    # =========================================================================

    def assign_machine(self, machine_id: str, reel_id: Optional[str]) -> Machine:
        """
        Mount a reel on a machine (or unmount with None) without moving stock.

        The new reel is flagged in machine and the displaced one freed.

        Raises:
            MachineNotFoundError: If no machine has this id
            ReelNotFoundError: If reel_id is given and unknown
        """
        with self._machine_lock(machine_id):
            if reel_id is not None:
                self._reels.get(reel_id)

            previous = self._machines.assign_reel(machine_id, reel_id)
            try:
                if reel_id is not None:
                    self._reels.set_in_machine(reel_id, True)
            except ReelNotFoundError:
                # Reel vanished after the check; undo the assignment
                self._machines.assign_reel(machine_id, previous)
                raise

            if previous and previous != reel_id:
                self._free_reel(previous, logger)

            logger.info(f"Machine {machine_id} assigned reel {reel_id} (was {previous})")
            return self._machines.get(machine_id)

    def remove_machine(self, machine_id: str) -> Machine:
        """
        Remove a machine, freeing the reel it held.

        Raises:
            MachineNotFoundError: If no machine has this id
            MachineInUseError: If the ledger references it and hard delete is off
        """
        with self._machine_lock(machine_id):
            removed = self._machines.remove(machine_id)
            if removed.assigned_reel_id:
                self._free_reel(removed.assigned_reel_id, logger)

        with self._machine_locks_lock:
            self._machine_locks.pop(machine_id, None)
        return removed

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _validate(self, request: TransferRequest) -> None:
        quantity = request.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantityError(quantity)
        if not request.reel_id or not self._reels.exists(request.reel_id):
            raise ReelNotFoundError(request.reel_id)
        if not request.machine_id or not self._machines.exists(request.machine_id):
            raise MachineNotFoundError(request.machine_id)

    def _free_reel(self, reel_id: str, log) -> bool:
        """Clear the in-machine flag; returns the previous flag."""
        try:
            return self._reels.set_in_machine(reel_id, False)
        except ReelNotFoundError:
            log.warning(f"Displaced reel {reel_id} no longer exists")
            return False

    def _compensate(
        self,
        tlog,
        reservation: StockReservation,
        machine_id: Optional[str] = None,
        previous_reel_id: Optional[str] = None,
        refreeze_reel_id: Optional[str] = None,
    ) -> None:
        """
        Undo step 2 and the parts of step 3 that ran, in reverse order.

        Every undo is attempted even if an earlier one fails.
        """
        if refreeze_reel_id:
            try:
                self._reels.set_in_machine(refreeze_reel_id, True)
            except Exception as e:
                tlog.critical(f"Could not restore flag on reel {refreeze_reel_id}: {e}")

        if machine_id:
            try:
                self._machines.assign_reel(machine_id, previous_reel_id)
            except Exception as e:
                tlog.critical(f"Could not restore assignment on machine {machine_id}: {e}")

        try:
            self._reels.release(reservation)
        except Exception as e:
            tlog.critical(
                f"Could not release {reservation.amount} back to reel {reservation.reel_id}: {e}"
            )
            return

        tlog.info(f"Compensated: {reservation.amount} returned to reel {reservation.reel_id}")

    def _reject(
        self,
        request: TransferRequest,
        state: TransferState,
        kind: TransferErrorKind,
        error: Exception,
        tlog,
        available: Optional[int] = None,
    ) -> TransferResult:
        message = getattr(error, "message", str(error))
        tlog.warning(f"Transfer rejected in {state.value}: {kind.value} - {message}")
        return TransferResult.create_rejected(request, kind, message, available=available)

    def _machine_lock(self, machine_id: str) -> threading.Lock:
        with self._machine_locks_lock:
            lock = self._machine_locks.get(machine_id)
            if lock is None:
                lock = threading.Lock()
                self._machine_locks[machine_id] = lock
            return lock
