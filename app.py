"""
Bobina ledger - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration and sets up thread-aware logging
2. Builds the stores, ledger and transfer coordinator
3. Registers route blueprints
4. Sets up JSON error handlers

ARCHITECTURE:
    Flask request threads
    └── TransferCoordinator (shared)
        ├── ReelStore      per-reel locks
        ├── MachineStore   per-machine serialization in the coordinator
        └── Ledger         append-only

Stores publish mutation events on an EventBus; a live-refresh layer
subscribes through app.config["INVENTORY_SERVICES"].events.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask
from werkzeug.exceptions import HTTPException

from logging_config import setup_logging, get_logger
from core.exceptions import (
    BobinaLedgerError,
    ConflictError,
    InsufficientStockError,
    InvalidQuantityError,
    MachineNotFoundError,
    ReelNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from services.registry import InventoryServices, build_services
from routes import register_blueprints


logger = get_logger(__name__)

# Most specific first
ERROR_STATUS = (
    (ValidationError, 400),
    (InvalidQuantityError, 400),
    (ReelNotFoundError, 404),
    (MachineNotFoundError, 404),
    (InsufficientStockError, 409),
    (ConflictError, 409),
    (StoreUnavailableError, 503),
)


def _error_kind(error: BobinaLedgerError) -> str:
    """CamelCase class name -> snake_case kind without the Error suffix."""
    name = type(error).__name__
    if name.endswith("Error"):
        name = name[:-len("Error")]
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name).lstrip("_")


def create_app(
    config_object: str = "config.Config",
    services: Optional[InventoryServices] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the config class
        services: Prebuilt services (tests inject their own)

    Returns:
        Configured Flask application
    """
    env_file = Path(__file__).parent / ".env"
    if env_file.exists():
        load_dotenv(env_file, override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        log_dir=Path(app.config["LOG_DIR"]),
        enable_file_logging=enable_file_logging,
    )

    # Route Flask's own logger through our handlers
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting bobina ledger in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    if services is None:
        services = build_services(
            allow_hard_delete=app.config.get("ALLOW_HARD_DELETE", False),
            max_text_length=app.config.get("MAX_NOTES_LENGTH", 500),
        )
    app.config["INVENTORY_SERVICES"] = services

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(BobinaLedgerError)
    def handle_ledger_error(e: BobinaLedgerError):
        status = 500
        for error_type, code in ERROR_STATUS:
            if isinstance(e, error_type):
                status = code
                break

        if status >= 500:
            logger.error(f"{type(e).__name__}: {e}")
        else:
            logger.info(f"Request refused ({status}): {e.message}")

        body = {"error": _error_kind(e), "message": e.message}
        if isinstance(e, InsufficientStockError):
            body["available"] = e.available
        return body, status

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return {"error": "http_error", "message": e.description}, e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"error": "internal_error", "message": "An unexpected error occurred"}, 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode)
