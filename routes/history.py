"""
Transfer history routes.

Handles:
- GET /api/history          - ledger entries, newest first
- GET /api/history/summary  - usage totals for the same filters

Filters (query string): reel_id, machine_id, operator_id,
period=today|week|month, or start/end as ISO datetimes, q (free-text
search over reel code, machine name and operator), limit.
"""

from datetime import datetime, timezone

from flask import Blueprint, current_app, request

from core.exceptions import ValidationError
from models.ledger import DateRange
from services.reports import search_entries, usage_summary
from logging_config import get_logger


logger = get_logger(__name__)

history_bp = Blueprint("history", __name__, url_prefix="/api/history")


def _parse_datetime(name: str, value: str) -> datetime:
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(name, f"expected an ISO datetime, got {value!r}")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _date_range():
    """Build the DateRange for the request, or None for all time."""
    period = request.args.get("period")
    if period and period != "all":
        if period not in DateRange.PRESETS:
            raise ValidationError("period", f"expected one of {', '.join(DateRange.PRESETS)}")
        return DateRange.preset(period)

    start = request.args.get("start")
    end = request.args.get("end")
    if not start and not end:
        return None
    return DateRange(
        start=_parse_datetime("start", start) if start else None,
        end=_parse_datetime("end", end) if end else None,
    )


def _entries():
    """Matching ledger entries, oldest first."""
    services = current_app.config["INVENTORY_SERVICES"]
    entries = services.ledger.query(
        reel_id=request.args.get("reel_id") or None,
        machine_id=request.args.get("machine_id") or None,
        operator_id=request.args.get("operator_id") or None,
        date_range=_date_range(),
    )

    term = request.args.get("q")
    if not term:
        return list(entries)
    reel_codes = {r.id: r.code for r in services.reels.list()}
    machine_names = {m.id: m.name for m in services.machines.list()}
    return search_entries(entries, term, reel_codes, machine_names)


@history_bp.route("", methods=["GET"])
def list_history():
    limit_arg = request.args.get("limit")
    limit = current_app.config.get("HISTORY_DEFAULT_LIMIT", 100)
    if limit_arg:
        try:
            limit = int(limit_arg)
        except ValueError:
            raise ValidationError("limit", "must be a positive integer")
        if limit <= 0:
            raise ValidationError("limit", "must be a positive integer")

    entries = _entries()
    entries.reverse()
    page = entries[:limit]

    return {
        "entries": [e.to_dict() for e in page],
        "count": len(page),
        "total": len(entries),
    }


@history_bp.route("/summary", methods=["GET"])
def history_summary():
    return usage_summary(_entries())
