"""
Lunch order automation - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration and sets up logging
2. Builds the JSON-backed stores and the notification sink
3. Creates the automation service (thread-per-run)
4. Registers route blueprints
5. Sets up error handlers

ARCHITECTURE:
    Main Thread
    └── Flask request handling (start runs, poll results, serve confirmations)

    Run Threads (one at a time)
    └── Each with its OWN browser, processing restaurants sequentially
"""

from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask

from logging_config import setup_logging, get_logger
from services.automation_service import AutomationService, create_collaborators
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def create_app(
    config_object: str = "config.Config",
    overrides: Optional[Dict[str, Any]] = None,
    surface_factory=None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the Config class to load
        overrides: Settings applied on top of the Config class (tests)
        surface_factory: Replaces the Playwright browser for runs (tests)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

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

    logger.info(f"Starting lunch order service in {app.config.get('ENVIRONMENT')} mode")

    Path(app.config["CONFIRMATIONS_DIR"]).mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    collaborators = create_collaborators(app.config)
    app.config["ORDER_SOURCE"] = collaborators["order_source"]
    app.config["USER_DIRECTORY"] = collaborators["users"]

    automation_service = AutomationService(
        app.config,
        order_source=collaborators["order_source"],
        users=collaborators["users"],
        stats=collaborators["stats"],
        notifier=collaborators["notifier"],
        surface_factory=surface_factory,
    )
    app.config["AUTOMATION_SERVICE"] = automation_service
    logger.info("Automation service initialized")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        automation_service.shutdown()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(404)
    def handle_not_found(e):
        return {"error": "Not found"}, 404

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"error": "An unexpected error occurred"}, 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # The reloader would start a second process with its own run threads
    app.run(debug=debug_mode, use_reloader=False)
