"""
Service-level API routes.

Handles:
- /health         - Health check endpoint
- /api/dashboard  - Aggregate inventory counts
"""

from flask import Blueprint, current_app

from services.reports import inventory_summary
from logging_config import get_logger


logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    services = current_app.config.get("INVENTORY_SERVICES")
    if services:
        health_status["checks"]["reels"] = len(services.reels)
        health_status["checks"]["machines"] = len(services.machines)
        health_status["checks"]["ledger_entries"] = len(services.ledger)
    else:
        health_status["checks"]["services"] = "not_available"
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code


@api_bp.route("/api/dashboard", methods=["GET"])
def dashboard():
    services = current_app.config["INVENTORY_SERVICES"]
    return inventory_summary(services.reels.list(), services.machines.list())
