"""
Reel (bobina) data model.

A reel is one batch of plastic film stock. Its two counters move together:
every unit that leaves `quantity_available` through a transfer lands in
`quantity_used`.

Thread Safety:
    - Reel is a plain mutable dataclass owned by the ReelStore
    - The store hands out copies; callers never see live store state
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional

from core.exceptions import ValidationError
from core.sanitize import sanitize_optional, sanitize_text


class Priority(Enum):
    """
    Consumption priority of a reel.

    Values are the labels the warehouse uses; `rank` orders them for the
    priority view (high first).
    """

    HIGH = "alta"
    MEDIUM = "media"
    LOW = "baixa"

    @property
    def rank(self) -> int:
        return {"alta": 3, "media": 2, "baixa": 1}[self.value]

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        """Accept an enum, a stored label, or the English name."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        aliases = {"high": "alta", "medium": "media", "média": "media", "low": "baixa"}
        text = aliases.get(text, text)
        try:
            return cls(text)
        except ValueError:
            raise ValidationError("priority", f"unknown priority {value!r}")


# Fields an edit-action may change. Counters other than the restock of
# quantity_available, the in-machine flag and the id belong to transfers.
EDITABLE_FIELDS = (
    "code",
    "material",
    "color",
    "thickness",
    "width",
    "weight",
    "quantity_available",
    "priority",
    "location",
    "supplier",
    "notes",
    "entry_date",
    "expiry_date",
)

TEXT_FIELDS = ("location", "supplier", "notes")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_non_negative_int(field_name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(field_name, "must be an integer")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError(field_name, "must be an integer")
    if not isinstance(value, int):
        raise ValidationError(field_name, "must be an integer")
    if value < 0:
        raise ValidationError(field_name, "must not be negative")
    return value


def _parse_non_negative_float(field_name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(field_name, "must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field_name, "must be a number")
    if number < 0:
        raise ValidationError(field_name, "must not be negative")
    return number


def _parse_date(field_name: str, value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(field_name, f"expected YYYY-MM-DD, got {value!r}")


def _parse_required_text(field_name: str, value: Any, max_length: int) -> str:
    text = sanitize_text(value, max_length)
    if not text:
        raise ValidationError(field_name, "is required")
    return text


def clean_reel_fields(
    data: Dict[str, Any],
    partial: bool = False,
    max_text_length: int = 500,
) -> Dict[str, Any]:
    """
    Validate and normalize loosely-typed reel form data.

    Args:
        data: Raw mapping (JSON body, form fields)
        partial: True for edits; only present keys are checked
        max_text_length: Truncation length for free-text fields

    Returns:
        Dict of model field name -> typed value, only for editable fields

    Raises:
        ValidationError: On the first bad field
    """
    cleaned: Dict[str, Any] = {}

    for name in ("code", "material", "color"):
        if name in data or not partial:
            cleaned[name] = _parse_required_text(name, data.get(name), 100)

    for name in ("thickness", "width", "weight"):
        if name in data:
            cleaned[name] = _parse_non_negative_float(name, data[name])
        elif not partial:
            cleaned[name] = 0.0

    if "quantity_available" in data:
        cleaned["quantity_available"] = _parse_non_negative_int(
            "quantity_available", data["quantity_available"]
        )
    elif not partial:
        raise ValidationError("quantity_available", "is required")

    if "priority" in data:
        cleaned["priority"] = Priority.parse(data["priority"])
    elif not partial:
        cleaned["priority"] = Priority.MEDIUM

    for name in TEXT_FIELDS:
        if name in data:
            cleaned[name] = sanitize_optional(data[name], max_text_length)

    for name in ("entry_date", "expiry_date"):
        if name in data:
            cleaned[name] = _parse_date(name, data[name])

    return cleaned


@dataclass
class Reel:
    """
    One reel of film stock.

    Invariants:
        quantity_available >= 0
        quantity_used only grows, and only through transfers
    """

    code: str
    """Display label (e.g. 'BOB-001')."""

    material: str
    """Plastic kind (PEBD, PP, ...)."""

    color: str
    """Film color."""

    quantity_available: int
    """Units in stock."""

    thickness: float = 0.0
    """Film thickness (micra)."""

    width: float = 0.0
    """Reel width (cm)."""

    weight: float = 0.0
    """Weight per unit (kg)."""

    quantity_used: int = 0
    """Units moved onto machines so far."""

    priority: Priority = Priority.MEDIUM
    """Consumption priority."""

    location: Optional[str] = None
    """Warehouse position (e.g. 'A1-02')."""

    supplier: Optional[str] = None
    """Supplier name."""

    notes: Optional[str] = None
    """Free-text remarks."""

    in_machine: bool = False
    """True once the whole reel has gone to a machine, or a machine holds it."""

    sent_to_machine_at: Optional[datetime] = None
    """Last time stock left the reel."""

    entry_date: date = field(default_factory=lambda: _utcnow().date())
    """Date the reel entered the warehouse."""

    expiry_date: Optional[date] = None
    """Material expiry, if any."""

    added_by: Optional[str] = None
    """Operator who registered the reel."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        added_by: Optional[str] = None,
        max_text_length: int = 500,
    ) -> "Reel":
        """Build a new reel from an add-action payload."""
        fields = clean_reel_fields(data, partial=False, max_text_length=max_text_length)
        if fields.get("entry_date") is None:
            fields.pop("entry_date", None)
        if data.get("id"):
            fields["id"] = str(data["id"])
        if added_by:
            fields["added_by"] = added_by
        return cls(**fields)

    def copy(self) -> "Reel":
        return replace(self)

    @property
    def total_weight(self) -> float:
        """Weight of the stock still available."""
        return self.weight * self.quantity_available

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "code": self.code,
            "material": self.material,
            "color": self.color,
            "thickness": self.thickness,
            "width": self.width,
            "weight": self.weight,
            "quantity_available": self.quantity_available,
            "quantity_used": self.quantity_used,
            "priority": self.priority.value,
            "location": self.location,
            "supplier": self.supplier,
            "notes": self.notes,
            "in_machine": self.in_machine,
            "sent_to_machine_at": (
                self.sent_to_machine_at.isoformat() if self.sent_to_machine_at else None
            ),
            "entry_date": self.entry_date.isoformat() if self.entry_date else None,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "added_by": self.added_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
