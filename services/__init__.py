"""
Services layer for the bobina ledger.

This module contains the stores and the business logic built on them:
- ReelStore: reels and their stock counters (per-reel locking)
- MachineStore: machines and their current reel
- Ledger: append-only transfer history
- TransferCoordinator: all-or-nothing transfer of stock onto a machine
- reports: dashboard and history aggregates

Thread Model:
    Flask request threads call the coordinator concurrently.
    ├── ReelStore serializes stock checks per reel
    ├── TransferCoordinator serializes assignment per machine
    └── Ledger appends under a short lock

Use build_services() to get a wired bundle.
"""

from .reel_store import ReelStore, StockReservation
from .machine_store import MachineStore
from .ledger import Ledger, LedgerQuery
from .transfer_coordinator import TransferCoordinator
from .registry import InventoryServices, build_services

__all__ = [
    "ReelStore",
    "StockReservation",
    "MachineStore",
    "Ledger",
    "LedgerQuery",
    "TransferCoordinator",
    "InventoryServices",
    "build_services",
]
