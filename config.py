"""
Configuration for PrintQueueServer.

Every value can be overridden from the environment or a .env file.
Delays are in seconds.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
# This must happen before the Config class is defined
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    PORT = int(os.environ.get("PORT", "3001"))
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # JSON payloads only

    # API key shared with the upstream ordering service.
    # When unset the /api routes answer 500 instead of running unauthenticated.
    API_KEY = os.environ.get("API_KEY", "")

    # Printer
    PRINTER_NAME = os.environ.get("PRINTER_NAME", "")

    # ==========================================================================
    # Durable state
    # ==========================================================================
    # QUEUE_FILE: JSON array of pending jobs, rewritten after every change
    # DELIVERY_STATE_FILE: delivery-number counters; empty string disables
    #   persistence (counters then restart at the start letter on boot)
    # TEMP_DIR: per-attempt scratch space for downloads and separator pages
    # ==========================================================================
    QUEUE_FILE = os.environ.get("QUEUE_FILE", str(BASE_DIR / "print-queue.json"))
    DELIVERY_STATE_FILE = os.environ.get(
        "DELIVERY_STATE_FILE", str(BASE_DIR / "delivery-state.json")
    )
    TEMP_DIR = os.environ.get("TEMP_DIR", str(BASE_DIR / "temp"))

    # ==========================================================================
    # Delivery numbers
    # ==========================================================================
    DELIVERY_NUMBER_START = os.environ.get("DELIVERY_NUMBER_START", "A")
    # Issue the delivery number at submission (returned to the caller)
    # instead of lazily on the first print attempt.
    ASSIGN_DELIVERY_ON_SUBMIT = _env_bool("ASSIGN_DELIVERY_ON_SUBMIT", "0")

    # ==========================================================================
    # Retry policy
    # ==========================================================================
    # wait = min(attempts × base, RETRY_MAX_DELAY_SECONDS)
    # base is PRINTER_OFFLINE_DELAY_SECONDS when the printer is unreachable,
    # RETRY_BASE_DELAY_SECONDS otherwise.
    # ==========================================================================
    RETRY_BASE_DELAY_SECONDS = float(os.environ.get("RETRY_BASE_DELAY_SECONDS", "10"))
    PRINTER_OFFLINE_DELAY_SECONDS = float(
        os.environ.get("PRINTER_OFFLINE_DELAY_SECONDS", "30")
    )
    RETRY_MAX_DELAY_SECONDS = float(os.environ.get("RETRY_MAX_DELAY_SECONDS", "300"))

    # ==========================================================================
    # Printing
    # ==========================================================================
    GROUP_SETTLE_SECONDS = float(os.environ.get("GROUP_SETTLE_SECONDS", "1"))
    SEPARATOR_SETTLE_SECONDS = float(os.environ.get("SEPARATOR_SETTLE_SECONDS", "2"))
    DISPATCH_TIMEOUT_SECONDS = float(os.environ.get("DISPATCH_TIMEOUT_SECONDS", "120"))
    DOWNLOAD_TIMEOUT_SECONDS = float(os.environ.get("DOWNLOAD_TIMEOUT_SECONDS", "60"))
    SKIP_PRINTED_GROUPS = _env_bool("SKIP_PRINTED_GROUPS", "1")

    # Start the queue worker from create_app()
    START_QUEUE_WORKER = True


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    API_KEY = "test-api-key"
    DELIVERY_STATE_FILE = ""
    RETRY_BASE_DELAY_SECONDS = 0.0
    PRINTER_OFFLINE_DELAY_SECONDS = 0.0
    GROUP_SETTLE_SECONDS = 0.0
    SEPARATOR_SETTLE_SECONDS = 0.0
    START_QUEUE_WORKER = False
