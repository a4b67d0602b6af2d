"""
Reel routes.

Handles:
- GET    /api/reels            - list, ordered by priority (?priority=alta|media|baixa|todas,
                                 ?status=todos|estoque|vazio)
- POST   /api/reels            - add a reel
- GET    /api/reels/<id>       - one reel
- PATCH  /api/reels/<id>       - edit (restock, relabel, ...)
- DELETE /api/reels/<id>       - remove (409 while the ledger references it)

Store exceptions propagate to the app's error handlers.
"""

from flask import Blueprint, current_app, request

from services.reports import ALL_PRIORITIES, ALL_STATUSES, filter_by_stock, sort_by_priority
from logging_config import get_logger


logger = get_logger(__name__)

reels_bp = Blueprint("reels", __name__, url_prefix="/api/reels")


def _reels():
    return current_app.config["INVENTORY_SERVICES"].reels


@reels_bp.route("", methods=["GET"])
def list_reels():
    priority = request.args.get("priority", ALL_PRIORITIES)
    status = request.args.get("status", ALL_STATUSES)
    reels = sort_by_priority(filter_by_stock(_reels().list(), status), priority)
    return {"reels": [r.to_dict() for r in reels], "count": len(reels)}


@reels_bp.route("", methods=["POST"])
def create_reel():
    """Add-action: register a reel with its initial stock."""
    data = request.get_json(silent=True) or {}
    operator_id = request.headers.get("X-Operator-Id")

    reel = _reels().create(data, added_by=operator_id)
    return reel.to_dict(), 201


@reels_bp.route("/<reel_id>", methods=["GET"])
def get_reel(reel_id: str):
    return _reels().get(reel_id).to_dict()


@reels_bp.route("/<reel_id>", methods=["PATCH"])
def update_reel(reel_id: str):
    data = request.get_json(silent=True) or {}
    return _reels().update(reel_id, data).to_dict()


@reels_bp.route("/<reel_id>", methods=["DELETE"])
def delete_reel(reel_id: str):
    _reels().remove(reel_id)
    return "", 204
