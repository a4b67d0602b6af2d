"""
Transfer request and result models.

A transfer moves N units of one reel onto one machine. The request is a
frozen snapshot of what the operator asked for; the result is what the
coordinator reports back.

Lifecycle:
    REQUESTED -> VALIDATED -> APPLIED -> RECORDED
    REQUESTED | VALIDATED | APPLIED -> REJECTED
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional

from core.sanitize import sanitize_optional, sanitize_text


class TransferState(Enum):
    """State of one transfer operation."""

    REQUESTED = "requested"
    """Received, nothing checked yet."""

    VALIDATED = "validated"
    """Quantity, reel and machine checked."""

    APPLIED = "applied"
    """Stock decremented on the reel."""

    RECORDED = "recorded"
    """Machine assigned and ledger entry written. Terminal success."""

    REJECTED = "rejected"
    """Terminal failure. No store mutation remains visible."""


class TransferErrorKind(Enum):
    """Why a transfer was rejected."""

    INVALID_QUANTITY = "invalid_quantity"
    REEL_NOT_FOUND = "reel_not_found"
    MACHINE_NOT_FOUND = "machine_not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    MACHINE_ASSIGNMENT_FAILED = "machine_assignment_failed"
    LEDGER_APPEND_FAILED = "ledger_append_failed"
    STORE_UNAVAILABLE = "store_unavailable"

    @property
    def is_user_error(self) -> bool:
        """True for rejections the operator can fix by changing the request."""
        return self in (
            TransferErrorKind.INVALID_QUANTITY,
            TransferErrorKind.REEL_NOT_FOUND,
            TransferErrorKind.MACHINE_NOT_FOUND,
            TransferErrorKind.INSUFFICIENT_STOCK,
        )


def coerce_quantity(value: Any) -> Any:
    """
    Turn an integer-looking form value into an int.

    Anything else is returned unchanged for the coordinator to reject.
    """
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return value
    return value


@dataclass(frozen=True)
class TransferRequest:
    """
    Immutable transfer input.

    Built once at the boundary (HTTP handler or direct caller) and handed to
    the coordinator. It is frozen so concurrent transfers cannot alter each
    other's input.
    """

    reel_id: str
    machine_id: str
    quantity: int
    operator_id: str
    notes: Optional[str] = None

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        operator_id: Optional[str] = None,
        max_notes_length: int = 500,
    ) -> "TransferRequest":
        """
        Create from loosely-typed JSON or form data.

        Args:
            data: Request payload
            operator_id: Operator from the authenticated session, used when
                the payload has none
            max_notes_length: Truncation length for notes

        Returns:
            TransferRequest (quantity not yet validated)
        """
        return cls(
            reel_id=sanitize_text(data.get("reel_id"), 100),
            machine_id=sanitize_text(data.get("machine_id"), 100),
            quantity=coerce_quantity(data.get("quantity")),
            operator_id=sanitize_text(data.get("operator_id") or operator_id, 100),
            notes=sanitize_optional(data.get("notes"), max_notes_length),
        )


@dataclass(frozen=True)
class TransferResult:
    """
    Outcome of one transfer.

    On success `ledger_entry_id` and the reel counters are set. On failure
    `error_kind` and `message` are set, and `available` carries the reel's
    stock for INSUFFICIENT_STOCK.
    """

    state: TransferState
    reel_id: str
    machine_id: str
    quantity: Any
    ledger_entry_id: Optional[str] = None
    reel_remaining_quantity: Optional[int] = None
    reel_used_quantity: Optional[int] = None
    error_kind: Optional[TransferErrorKind] = None
    message: str = ""
    available: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.state == TransferState.RECORDED

    @classmethod
    def create_recorded(
        cls,
        request: TransferRequest,
        ledger_entry_id: str,
        remaining: int,
        used: int,
    ) -> "TransferResult":
        return cls(
            state=TransferState.RECORDED,
            reel_id=request.reel_id,
            machine_id=request.machine_id,
            quantity=request.quantity,
            ledger_entry_id=ledger_entry_id,
            reel_remaining_quantity=remaining,
            reel_used_quantity=used,
            message=f"{request.quantity} units transferred to the machine",
        )

    @classmethod
    def create_rejected(
        cls,
        request: TransferRequest,
        kind: TransferErrorKind,
        message: str,
        available: Optional[int] = None,
    ) -> "TransferResult":
        return cls(
            state=TransferState.REJECTED,
            reel_id=request.reel_id,
            machine_id=request.machine_id,
            quantity=request.quantity,
            error_kind=kind,
            message=message,
            available=available,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the caller-facing payload.

        Success: {ledger_entry_id, reel_remaining_quantity, ...}
        Failure: {error, message, available?}
        """
        if self.ok:
            return {
                "state": self.state.value,
                "ledger_entry_id": self.ledger_entry_id,
                "reel_remaining_quantity": self.reel_remaining_quantity,
                "reel_used_quantity": self.reel_used_quantity,
                "reel_id": self.reel_id,
                "machine_id": self.machine_id,
                "quantity": self.quantity,
            }

        result: Dict[str, Any] = {
            "state": self.state.value,
            "error": self.error_kind.value if self.error_kind else None,
            "message": self.message,
        }
        if self.available is not None:
            result["available"] = self.available
        return result
