"""
Custom exceptions for the bobina ledger.

Exception Hierarchy:
    BobinaLedgerError (base)
    ├── ValidationError          - Malformed create/update payload
    ├── InvalidEntryError        - Malformed ledger entry
    ├── StoreUnavailableError    - Backing store not reachable
    ├── ConflictError            - Record still referenced by the ledger
    │   ├── ReelInUseError
    │   └── MachineInUseError
    ├── TransferRejectedError    - User-correctable transfer failure
    │   ├── InvalidQuantityError
    │   ├── ReelNotFoundError
    │   ├── MachineNotFoundError
    │   └── InsufficientStockError
    └── ConsistencyError         - Failure after stock was already moved
        ├── MachineAssignmentFailedError
        └── LedgerAppendFailedError

Usage:
    Rejections are surfaced to the operator as-is and never retried here.
    Consistency errors are only raised after the coordinator has already
    compensated the partial transfer.
"""

from typing import Optional, Dict, Any


class BobinaLedgerError(Exception):
    """
    Base exception for all bobina ledger errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(BobinaLedgerError):
    """A reel or machine payload is missing fields or has bad values."""

    def __init__(self, field_name: str, reason: str):
        super().__init__(f"Invalid {field_name}: {reason}", {"field": field_name})
        self.field_name = field_name


class InvalidEntryError(BobinaLedgerError):
    """
    A ledger entry was rejected on append.

    Raised for non-positive quantities or for reel/machine references
    that do not exist. The coordinator validates before appending, so
    this normally indicates a record removed mid-transfer.
    """

    def __init__(self, reason: str, entry_id: Optional[str] = None):
        details = {"entry_id": entry_id} if entry_id else {}
        super().__init__(f"Invalid ledger entry: {reason}", details)
        self.reason = reason


class StoreUnavailableError(BobinaLedgerError):
    """
    The persistence layer behind a store did not answer.

    In-memory stores never raise this; durable backings do when their
    connection is down. No mutation is visible when it is raised.
    """

    def __init__(self, store: str, message: Optional[str] = None):
        super().__init__(
            message or f"{store} store is not available",
            {"store": store, "resolution": "Check the storage backend and retry"},
        )
        self.store = store


# =============================================================================
# CONFLICTS - Removal refused while the ledger references the record
# =============================================================================

class ConflictError(BobinaLedgerError):
    """Base class for refused removals."""


class ReelInUseError(ConflictError):
    """The reel has ledger history and hard delete is disabled."""

    def __init__(self, reel_id: str):
        super().__init__(
            f"Reel {reel_id} is referenced by ledger entries and cannot be removed",
            {"reel_id": reel_id},
        )
        self.reel_id = reel_id


class MachineInUseError(ConflictError):
    """The machine has ledger history and hard delete is disabled."""

    def __init__(self, machine_id: str):
        super().__init__(
            f"Machine {machine_id} is referenced by ledger entries and cannot be removed",
            {"machine_id": machine_id},
        )
        self.machine_id = machine_id


# =============================================================================
# REJECTIONS - Operator can correct the request
# =============================================================================

class TransferRejectedError(BobinaLedgerError):
    """
    Base class for user-correctable transfer failures.

    No store has been mutated when one of these is raised.
    """


class InvalidQuantityError(TransferRejectedError):
    """Transfer quantity is not a positive integer."""

    def __init__(self, quantity: Any):
        super().__init__(
            f"Quantity must be a positive integer, got {quantity!r}",
            {"quantity": quantity},
        )
        self.quantity = quantity


class ReelNotFoundError(TransferRejectedError):
    """No reel with the given id."""

    def __init__(self, reel_id: str):
        super().__init__(f"Reel not found: {reel_id}", {"reel_id": reel_id})
        self.reel_id = reel_id


class MachineNotFoundError(TransferRejectedError):
    """No machine with the given id."""

    def __init__(self, machine_id: str):
        super().__init__(f"Machine not found: {machine_id}", {"machine_id": machine_id})
        self.machine_id = machine_id


class InsufficientStockError(TransferRejectedError):
    """
    Not enough stock on the reel to cover the transfer.

    Carries the available quantity so the operator can be prompted to
    correct the amount without a second lookup.
    """

    def __init__(self, reel_id: str, required: int, available: int):
        message = (
            f"Insufficient stock on reel {reel_id}: "
            f"need {required}, only {available} available"
        )
        details = {
            "reel_id": reel_id,
            "required": required,
            "available": available,
            "resolution": "Reduce the quantity or restock the reel",
        }
        super().__init__(message, details)
        self.reel_id = reel_id
        self.required = required
        self.available = available


# =============================================================================
# CONSISTENCY ERRORS - Reported only after compensation has run
# =============================================================================

class ConsistencyError(BobinaLedgerError):
    """
    A transfer step failed after the stock decrement had been applied.

    The coordinator reports it in a rejected TransferResult once every
    mutation of the failed transfer has been reversed.
    """

    def __init__(
        self,
        message: str,
        reel_id: Optional[str] = None,
        machine_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        details: Dict[str, Any] = {}
        if reel_id:
            details["reel_id"] = reel_id
        if machine_id:
            details["machine_id"] = machine_id
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.reel_id = reel_id
        self.machine_id = machine_id
        self.cause = cause


class MachineAssignmentFailedError(ConsistencyError):
    """Assigning the reel to the machine failed; stock was restored."""


class LedgerAppendFailedError(ConsistencyError):
    """Writing the ledger entry failed; stock and assignment were restored."""
