"""
PrintQueueServer - Flask Application Entry Point.

This is a slim app factory that:
1. Restores the delivery number counters and the persisted queue
2. Wires the executor (dispatcher, fetcher, issuer) into the queue
3. Resumes processing of jobs left over from the last run
4. Registers route blueprints and JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (enqueue, status, clear, health)
    └── Cleanup on shutdown (stop the worker; jobs stay persisted)

    PrintQueue Thread (background, started on demand)
    └── One job at a time: separators → download → print → summary,
        retried with backoff until it prints

All shared state lives in the instances created here and stored in
app.config; nothing is module-global.
"""

from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import setup_logging, get_logger
from core.exceptions import InvalidJobError
from core.file_fetcher import FileFetcher
from core.json_store import JsonFileStore
from core.printer_dispatcher import CupsDispatcher, PrinterDispatcher
from modules.delivery_number import DeliveryNumberIssuer
from modules.job_executor import JobExecutor
from services.job_queue import JobQueue, RetryPolicy
from services.queue_store import QueueStore
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def create_app(
    config_object: str = "config.Config",
    config_overrides: Optional[Dict[str, Any]] = None,
    dispatcher: Optional[PrinterDispatcher] = None,
    fetcher: Optional[FileFetcher] = None
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the configuration class
        config_overrides: Values applied on top of the configuration class
        dispatcher: Printer backend (CUPS by default)
        fetcher: Document downloader (requests-based by default)

    Returns:
        Configured Flask application
    """
    # .env next to app.py wins over the shell environment (override=True)
    env_file = Path(__file__).parent / ".env"
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)  # Default behavior

    # Create Flask app
    app = Flask(__name__)
    app.config.from_object(config_object)
    if config_overrides:
        app.config.update(config_overrides)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting PrintQueueServer in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # DELIVERY NUMBERS
    # =========================================================================

    state_file = app.config.get("DELIVERY_STATE_FILE")
    state_store = JsonFileStore(Path(state_file)) if state_file else None
    issuer = DeliveryNumberIssuer(
        start_letter=app.config.get("DELIVERY_NUMBER_START", "A"),
        store=state_store,
    )
    app.config["DELIVERY_ISSUER"] = issuer

    # =========================================================================
    # PRINTING
    # =========================================================================

    if dispatcher is None:
        dispatcher = CupsDispatcher(
            printer_name=app.config.get("PRINTER_NAME", ""),
            timeout_seconds=app.config["DISPATCH_TIMEOUT_SECONDS"],
        )
    if fetcher is None:
        fetcher = FileFetcher(timeout_seconds=app.config["DOWNLOAD_TIMEOUT_SECONDS"])
    app.config["PRINTER_DISPATCHER"] = dispatcher

    executor = JobExecutor(
        issuer=issuer,
        dispatcher=dispatcher,
        fetcher=fetcher,
        temp_dir=Path(app.config["TEMP_DIR"]),
        group_settle_seconds=app.config["GROUP_SETTLE_SECONDS"],
        separator_settle_seconds=app.config["SEPARATOR_SETTLE_SECONDS"],
        skip_printed_groups=app.config["SKIP_PRINTED_GROUPS"],
    )
    app.config["JOB_EXECUTOR"] = executor

    # =========================================================================
    # QUEUE (loads persisted jobs)
    # =========================================================================

    start_worker = bool(app.config.get("START_QUEUE_WORKER", True))
    job_queue = JobQueue(
        store=QueueStore(Path(app.config["QUEUE_FILE"])),
        executor=executor,
        retry_policy=RetryPolicy(
            base_delay_seconds=app.config["RETRY_BASE_DELAY_SECONDS"],
            printer_offline_delay_seconds=app.config["PRINTER_OFFLINE_DELAY_SECONDS"],
            max_delay_seconds=app.config["RETRY_MAX_DELAY_SECONDS"],
        ),
        assign_delivery_on_submit=app.config["ASSIGN_DELIVERY_ON_SUBMIT"],
        start_worker=start_worker,
    )
    app.config["JOB_QUEUE"] = job_queue

    if start_worker:
        job_queue.start()

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        job_queue.stop()
        logger.info(f"Shutdown complete ({len(job_queue)} jobs left in queue)")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    @app.route("/health", methods=["GET"])
    def liveness():
        """Unauthenticated liveness probe."""
        return jsonify({"status": "ok", "environment": app.config.get("ENVIRONMENT", "unknown")})

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(InvalidJobError)
    def handle_invalid_job(e):
        return jsonify({"success": False, "error": e.message}), 400

    @app.errorhandler(RequestEntityTooLarge)
    def handle_payload_too_large(e):
        max_kb = app.config.get("MAX_CONTENT_LENGTH", 1024 * 1024) / 1024
        return jsonify({"success": False, "error": f"Payload too large (max {max_kb:.0f} KB)"}), 413

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({"success": False, "error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def handle_server_error(e):
        original = getattr(e, "original_exception", None) or e
        if not isinstance(original, HTTPException):
            logger.error(f"500 error: {original}", exc_info=original)
        return jsonify({"success": False, "error": "Internal server error"}), 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # The reloader would start a second queue worker on the same queue file
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=debug_mode, use_reloader=False)
