"""
Configuration for the bobina ledger service.

Values come from the environment (optionally via a .env file next to
this module). Stores are in-memory; a durable backing replaces the store
classes, not these settings.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env early so the Config class sees the variables at definition time
load_dotenv(override=True)

BASE_DIR = Path(__file__).resolve().parent


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    TESTING = False

    # Logging
    LOG_DIR = os.environ.get("LOG_DIR", str(BASE_DIR / "logs"))

    # ==========================================================================
    # Inventory rules
    # ==========================================================================
    # ALLOW_HARD_DELETE: when 0 (default), reels and machines that appear in
    #   the transfer history cannot be removed. Set to 1 only if audit
    #   history may lose its references.
    #
    # HISTORY_DEFAULT_LIMIT: rows returned by /api/history when the caller
    #   does not pass ?limit=. The history screen showed the last 100.
    #
    # MAX_NOTES_LENGTH: free-text fields (notes, location, supplier) are
    #   truncated to this many characters after sanitizing.
    # ==========================================================================
    ALLOW_HARD_DELETE = _env_flag("ALLOW_HARD_DELETE")
    HISTORY_DEFAULT_LIMIT = int(os.environ.get("HISTORY_DEFAULT_LIMIT", "100"))
    MAX_NOTES_LENGTH = int(os.environ.get("MAX_NOTES_LENGTH", "500"))


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    ALLOW_HARD_DELETE = False
