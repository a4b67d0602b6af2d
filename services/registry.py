"""
Service wiring.

The ledger validates entries against both stores, and both stores refuse
removal while the ledger references a record, so the pieces have to be
built together. build_services() is the one place that does it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from core.events import EventBus
from services.ledger import Ledger
from services.machine_store import MachineStore
from services.reel_store import ReelStore
from services.transfer_coordinator import TransferCoordinator
from logging_config import get_logger


logger = get_logger(__name__)


@dataclass
class InventoryServices:
    """Everything a caller (HTTP layer, tests, scripts) needs."""

    events: EventBus
    reels: ReelStore
    machines: MachineStore
    ledger: Ledger
    coordinator: TransferCoordinator


def build_services(
    allow_hard_delete: bool = False,
    max_text_length: int = 500,
    events: Optional[EventBus] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> InventoryServices:
    """
    Create and cross-wire the stores, ledger and coordinator.

    Args:
        allow_hard_delete: Permit removing records the ledger references
        max_text_length: Truncation for free-text reel fields
        events: Shared event bus (a new one if omitted)
        clock: Timestamp source for ledger entries

    Returns:
        InventoryServices bundle
    """
    events = events or EventBus()

    reels = ReelStore(events=events, allow_hard_delete=allow_hard_delete, max_text_length=max_text_length)
    machines = MachineStore(events=events, allow_hard_delete=allow_hard_delete)
    ledger = Ledger(reel_exists=reels.exists, machine_exists=machines.exists, events=events)

    reels.set_reference_check(ledger.references_reel)
    machines.set_reference_check(ledger.references_machine)

    coordinator = TransferCoordinator(reels, machines, ledger, clock=clock)

    logger.info(f"Inventory services built (hard delete {'on' if allow_hard_delete else 'off'})")
    return InventoryServices(
        events=events,
        reels=reels,
        machines=machines,
        ledger=ledger,
        coordinator=coordinator,
    )
