"""
Machine data model.

A machine holds at most one reel at a time. The assignment is a plain
reference; the coordinator keeps the reel's in-machine flag in step with it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from core.exceptions import ValidationError
from core.sanitize import sanitize_optional, sanitize_text


EDITABLE_FIELDS = ("name", "active", "operator_id")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_bool(field_name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValidationError(field_name, f"expected a boolean, got {value!r}")


def clean_machine_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate machine form data.

    `assigned_reel_id` is deliberately not handled here: assignment goes
    through the coordinator so the reel flags stay consistent.
    """
    cleaned: Dict[str, Any] = {}

    if "name" in data or not partial:
        name = sanitize_text(data.get("name"), 100)
        if not name:
            raise ValidationError("name", "is required")
        cleaned["name"] = name

    if "active" in data:
        cleaned["active"] = _parse_bool("active", data["active"])

    if "operator_id" in data:
        cleaned["operator_id"] = sanitize_optional(data["operator_id"], 100)

    return cleaned


@dataclass
class Machine:
    """A production unit that consumes reels."""

    name: str
    """Display name."""

    active: bool = False
    """Running or stopped. New machines start stopped."""

    assigned_reel_id: Optional[str] = None
    """Reel currently mounted, if any."""

    operator_id: Optional[str] = None
    """Operator responsible for the machine."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Machine":
        fields = clean_machine_fields(data, partial=False)
        if data.get("id"):
            fields["id"] = str(data["id"])
        return cls(**fields)

    def copy(self) -> "Machine":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "active": self.active,
            "assigned_reel_id": self.assigned_reel_id,
            "operator_id": self.operator_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
