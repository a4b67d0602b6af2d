"""
Machine store.

Keeps machines and the reel each one currently holds. assign_reel() is a
single unconditional set that reports the previous reel; sequencing
several assignments to the same machine is the coordinator's job.

Thread Safety:
    - One threading.Lock guards the whole table; every operation is a
      short dict read or write
    - Callers receive copies
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from core.events import EventBus
from core.exceptions import MachineInUseError, MachineNotFoundError, ValidationError
from models.machine import Machine, clean_machine_fields
from logging_config import get_logger


logger = get_logger(__name__)


class MachineStore:
    """In-memory keyed store of machines."""

    def __init__(self, events: Optional[EventBus] = None, allow_hard_delete: bool = False):
        self._machines: Dict[str, Machine] = {}
        self._lock = threading.Lock()

        self._events = events
        self._allow_hard_delete = allow_hard_delete
        self._is_referenced: Optional[Callable[[str], bool]] = None

    def set_reference_check(self, is_referenced: Callable[[str], bool]) -> None:
        """Install the 'does the ledger reference this machine?' callback."""
        self._is_referenced = is_referenced

    def get(self, machine_id: str) -> Machine:
        """
        Return a copy of the machine.

        Raises:
            MachineNotFoundError: If no machine has this id
        """
        with self._lock:
            return self._require(machine_id).copy()

    def exists(self, machine_id: str) -> bool:
        with self._lock:
            return machine_id in self._machines

    def list(self, active: Optional[bool] = None) -> List[Machine]:
        """Copies of all machines ordered by name."""
        with self._lock:
            machines = [m.copy() for m in self._machines.values()]
        if active is not None:
            machines = [m for m in machines if m.active == active]
        return sorted(machines, key=lambda m: m.name.lower())

    def find_by_reel(self, reel_id: str) -> List[Machine]:
        """Machines currently holding the reel."""
        with self._lock:
            return [m.copy() for m in self._machines.values() if m.assigned_reel_id == reel_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._machines)

    def assign_reel(self, machine_id: str, reel_id: Optional[str]) -> Optional[str]:
        """
        Set (or clear, with None) the machine's reel.

        Returns:
            The previously assigned reel id, or None

        Raises:
            MachineNotFoundError: If no machine has this id
        """
        with self._lock:
            machine = self._require(machine_id)
            previous = machine.assigned_reel_id
            machine.assigned_reel_id = reel_id
            machine.updated_at = datetime.now(timezone.utc)
            payload = machine.to_dict()

        logger.debug(f"Machine {machine_id} reel: {previous} -> {reel_id}")
        self._publish("machine.assigned", payload)
        return previous

    def create(self, data: Dict) -> Machine:
        """
        Register a new machine.

        Raises:
            ValidationError: On a bad or missing field, or a duplicate id
        """
        machine = Machine.from_dict(data)

        with self._lock:
            if machine.id in self._machines:
                raise ValidationError("id", f"machine {machine.id} already exists")
            self._machines[machine.id] = machine
            created = machine.copy()

        logger.info(f"Machine created: {created.name} ({created.id})")
        self._publish("machine.created", created.to_dict())
        return created

    def update(self, machine_id: str, patch: Dict) -> Machine:
        """
        Edit name, active flag or operator.

        Raises:
            MachineNotFoundError: If no machine has this id
            ValidationError: On a bad field
        """
        if "assigned_reel_id" in patch:
            raise ValidationError("assigned_reel_id", "use the assignment operation")

        changes = clean_machine_fields(patch, partial=True)

        with self._lock:
            machine = self._require(machine_id)
            for name, value in changes.items():
                setattr(machine, name, value)
            machine.updated_at = datetime.now(timezone.utc)
            updated = machine.copy()

        logger.info(f"Machine updated: {machine_id} ({', '.join(sorted(changes)) or 'no changes'})")
        self._publish("machine.updated", updated.to_dict())
        return updated

    def toggle_active(self, machine_id: str) -> Machine:
        """Flip the running flag."""
        with self._lock:
            machine = self._require(machine_id)
            machine.active = not machine.active
            machine.updated_at = datetime.now(timezone.utc)
            updated = machine.copy()

        logger.info(f"Machine {machine_id} {'activated' if updated.active else 'deactivated'}")
        self._publish("machine.updated", updated.to_dict())
        return updated

    def remove(self, machine_id: str) -> Machine:
        """
        Remove a machine.

        Returns:
            The removed machine (so the caller can free its reel)

        Raises:
            MachineNotFoundError: If no machine has this id
            MachineInUseError: If the ledger references it and hard delete is off
        """
        referenced = (
            not self._allow_hard_delete
            and self._is_referenced is not None
            and self._is_referenced(machine_id)
        )

        with self._lock:
            machine = self._require(machine_id)
            if referenced:
                raise MachineInUseError(machine_id)
            del self._machines[machine_id]

        logger.info(f"Machine removed: {machine_id}")
        self._publish("machine.removed", machine.to_dict())
        return machine

    def _require(self, machine_id: str) -> Machine:
        """Caller must hold self._lock."""
        machine = self._machines.get(machine_id)
        if machine is None:
            raise MachineNotFoundError(machine_id)
        return machine

    def _publish(self, topic: str, payload: Dict) -> None:
        if self._events is not None:
            self._events.publish(topic, payload)
