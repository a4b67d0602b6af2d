"""
Read-only views over reels, machines and the ledger.

These back the dashboard cards, the priority-ordered stock list and the
history totals. They take plain lists so they can run on any snapshot.
"""

from __future__ import annotations

from typing import Dict, Any, Iterable, List, Optional

from core.exceptions import ValidationError
from models.ledger import LedgerEntry
from models.machine import Machine
from models.reel import Priority, Reel


ALL_PRIORITIES = "todas"

# Stock-status filter of the reel list
ALL_STATUSES = "todos"
IN_STOCK = "estoque"
EMPTY = "vazio"
STOCK_STATUSES = (ALL_STATUSES, IN_STOCK, EMPTY)


def sort_by_priority(reels: Iterable[Reel], priority_filter: Optional[str] = ALL_PRIORITIES) -> List[Reel]:
    """
    Filter by priority and order high -> medium -> low.

    Args:
        reels: Reels to order
        priority_filter: 'todas' (or None) for all, otherwise a priority label

    Raises:
        ValidationError: For an unknown priority label
    """
    reels = list(reels)
    if priority_filter and priority_filter != ALL_PRIORITIES:
        wanted = Priority.parse(priority_filter)
        reels = [r for r in reels if r.priority == wanted]

    # Stable sort keeps insertion order inside one priority
    return sorted(reels, key=lambda r: r.priority.rank, reverse=True)


def filter_by_stock(reels: Iterable[Reel], status: Optional[str] = ALL_STATUSES) -> List[Reel]:
    """
    Keep reels with stock ('estoque'), without ('vazio'), or all ('todos').

    Raises:
        ValidationError: For an unknown status
    """
    reels = list(reels)
    if not status or status == ALL_STATUSES:
        return reels
    if status == IN_STOCK:
        return [r for r in reels if r.quantity_available > 0]
    if status == EMPTY:
        return [r for r in reels if r.quantity_available == 0]
    raise ValidationError("status", f"expected one of {', '.join(STOCK_STATUSES)}")


def inventory_summary(reels: Iterable[Reel], machines: Iterable[Machine] = ()) -> Dict[str, Any]:
    """Aggregate counts for the dashboard."""
    reels = list(reels)
    machines = list(machines)

    by_priority = {p.value: 0 for p in Priority}
    for reel in reels:
        by_priority[reel.priority.value] += 1

    return {
        "total_reels": len(reels),
        "total_quantity": sum(r.quantity_available for r in reels),
        "total_used": sum(r.quantity_used for r in reels),
        "total_weight": round(sum(r.total_weight for r in reels), 3),
        "by_priority": by_priority,
        "materials": sorted({r.material for r in reels}),
        "locations": sorted({r.location for r in reels if r.location}),
        "reels_in_machine": sum(1 for r in reels if r.in_machine),
        "out_of_stock": sum(1 for r in reels if r.quantity_available == 0),
        "total_machines": len(machines),
        "active_machines": sum(1 for m in machines if m.active),
    }


def search_entries(
    entries: Iterable[LedgerEntry],
    term: Optional[str],
    reel_codes: Dict[str, str],
    machine_names: Dict[str, str],
) -> List[LedgerEntry]:
    """
    Case-insensitive search over reel code, machine name and operator.

    Args:
        entries: Ledger entries to search
        term: Search text; empty keeps everything
        reel_codes: reel id -> code (ids of removed reels fall back to the id)
        machine_names: machine id -> name
    """
    entries = list(entries)
    term = (term or "").strip().lower()
    if not term:
        return entries

    def matches(entry: LedgerEntry) -> bool:
        haystack = (
            reel_codes.get(entry.reel_id, entry.reel_id),
            machine_names.get(entry.machine_id, entry.machine_id),
            entry.operator_id or "",
        )
        return any(term in text.lower() for text in haystack)

    return [e for e in entries if matches(e)]


def usage_summary(entries: Iterable[LedgerEntry]) -> Dict[str, Any]:
    """Totals shown above the transfer history."""
    total = 0
    operators = set()
    machines = set()
    count = 0
    for entry in entries:
        count += 1
        total += entry.quantity
        if entry.operator_id:
            operators.add(entry.operator_id)
        machines.add(entry.machine_id)

    return {
        "transfers": count,
        "total_quantity": total,
        "unique_operators": len(operators),
        "unique_machines": len(machines),
    }
