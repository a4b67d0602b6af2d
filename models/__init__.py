"""
Data models for the bobina ledger.

This module contains dataclasses for:
- Reel: one batch of film stock with its available/used counters
- Machine: a production unit holding at most one reel
- LedgerEntry: immutable record of one transfer
- TransferRequest / TransferResult: coordinator input and outcome

Reel and Machine are mutable and owned by their stores (callers get
copies). LedgerEntry and TransferRequest are frozen for safe sharing
between threads.
"""

from .reel import Reel, Priority
from .machine import Machine
from .ledger import LedgerEntry, DateRange
from .transfer import TransferRequest, TransferResult, TransferState, TransferErrorKind

__all__ = [
    # Inventory models
    "Reel",
    "Priority",
    "Machine",
    # Ledger models
    "LedgerEntry",
    "DateRange",
    # Transfer models
    "TransferRequest",
    "TransferResult",
    "TransferState",
    "TransferErrorKind",
]
