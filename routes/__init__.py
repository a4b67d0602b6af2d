"""
Flask route blueprints for the bobina ledger.

This module contains all route handlers organized by functionality:
- api: health check and dashboard
- reels: reel CRUD and the priority-ordered stock list
- machines: machine CRUD, start/stop and reel assignment
- transfers: stock transfer to a machine
- history: ledger queries and usage totals

Each blueprint is registered with the Flask app in create_app().
"""

from .api import api_bp
from .reels import reels_bp
from .machines import machines_bp
from .transfers import transfers_bp
from .history import history_bp

__all__ = [
    "api_bp",
    "reels_bp",
    "machines_bp",
    "transfers_bp",
    "history_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(api_bp)
    app.register_blueprint(reels_bp)
    app.register_blueprint(machines_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(history_bp)
