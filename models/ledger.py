"""
Ledger data models.

A LedgerEntry records one transfer of reel stock onto a machine. Entries
are frozen: once appended they are never changed or removed.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class LedgerEntry:
    """
    One transfer, as written to the history.

    `quantity` is the amount moved by this transfer alone; summing it over
    all entries of a reel gives the reel's quantity_used.
    """

    reel_id: str
    """Reel the stock came from."""

    machine_id: str
    """Machine the stock went to."""

    quantity: int
    """Units transferred (> 0)."""

    operator_id: str
    """Operator who performed the transfer."""

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """When the transfer was recorded (UTC)."""

    notes: Optional[str] = None
    """Optional operator remarks."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reel_id": self.reel_id,
            "machine_id": self.machine_id,
            "quantity": self.quantity,
            "operator_id": self.operator_id,
            "timestamp": self.timestamp.isoformat(),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive timestamp window for ledger queries.

    Either bound may be None for an open side.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    PRESETS = ("today", "week", "month")

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True

    @classmethod
    def preset(cls, name: str, now: Optional[datetime] = None) -> "DateRange":
        """
        Build one of the history screen's quick filters.

        today: since midnight UTC; week: last 7 days; month: last 30 days.

        Raises:
            ValueError: For an unknown preset name
        """
        now = now or datetime.now(timezone.utc)
        if name == "today":
            midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
            return cls(start=midnight, end=None)
        if name == "week":
            return cls(start=now - timedelta(days=7), end=None)
        if name == "month":
            return cls(start=now - timedelta(days=30), end=None)
        raise ValueError(f"Unknown date range preset: {name!r}")
