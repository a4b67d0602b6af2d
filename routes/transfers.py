"""
Transfer route.

POST /api/transfers moves stock from a reel onto a machine through the
TransferCoordinator. The operator comes from the JSON body or, as the
auth layer supplies it, the X-Operator-Id header.

Success: 201 {ledger_entry_id, reel_remaining_quantity, ...}
Failure: {error, message, available?} with a status per error kind.
"""

from flask import Blueprint, current_app, request

from models.transfer import TransferErrorKind, TransferRequest
from logging_config import get_logger


logger = get_logger(__name__)

transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")

STATUS_BY_KIND = {
    TransferErrorKind.INVALID_QUANTITY: 400,
    TransferErrorKind.REEL_NOT_FOUND: 404,
    TransferErrorKind.MACHINE_NOT_FOUND: 404,
    TransferErrorKind.INSUFFICIENT_STOCK: 409,
    TransferErrorKind.MACHINE_ASSIGNMENT_FAILED: 500,
    TransferErrorKind.LEDGER_APPEND_FAILED: 500,
    TransferErrorKind.STORE_UNAVAILABLE: 503,
}


@transfers_bp.route("", methods=["POST"])
def create_transfer():
    """
    Transfer stock to a machine.

    Each call is a new transfer; resubmitting the same form moves more
    stock.
    """
    data = request.get_json(silent=True) or {}
    transfer_request = TransferRequest.from_dict(
        data,
        operator_id=request.headers.get("X-Operator-Id"),
        max_notes_length=current_app.config.get("MAX_NOTES_LENGTH", 500),
    )

    if not transfer_request.operator_id:
        return {"error": "missing_operator", "message": "An operator id is required"}, 400

    coordinator = current_app.config["INVENTORY_SERVICES"].coordinator
    result = coordinator.transfer_request(transfer_request)

    if result.ok:
        return result.to_dict(), 201

    return result.to_dict(), STATUS_BY_KIND.get(result.error_kind, 500)
