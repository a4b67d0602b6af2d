"""
Core module for the bobina ledger.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- events: Store-mutation event bus
- sanitize: Free-text cleanup for operator input
"""

from .exceptions import (
    BobinaLedgerError,
    ValidationError,
    InvalidEntryError,
    StoreUnavailableError,
    ConflictError,
    ReelInUseError,
    MachineInUseError,
    TransferRejectedError,
    InvalidQuantityError,
    ReelNotFoundError,
    MachineNotFoundError,
    InsufficientStockError,
    ConsistencyError,
    MachineAssignmentFailedError,
    LedgerAppendFailedError,
)
from .events import EventBus, StoreEvent

__all__ = [
    "BobinaLedgerError",
    "ValidationError",
    "InvalidEntryError",
    "StoreUnavailableError",
    "ConflictError",
    "ReelInUseError",
    "MachineInUseError",
    "TransferRejectedError",
    "InvalidQuantityError",
    "ReelNotFoundError",
    "MachineNotFoundError",
    "InsufficientStockError",
    "ConsistencyError",
    "MachineAssignmentFailedError",
    "LedgerAppendFailedError",
    "EventBus",
    "StoreEvent",
]
