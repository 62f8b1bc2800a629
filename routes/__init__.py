"""
Flask route blueprints for the lunch order automation.

This module contains all route handlers organized by functionality:
- confirmation: Confirmation PDFs linked from the run summary
- api: JSON endpoints (start and poll runs, pending batches, health)

Each blueprint is registered with the Flask app in create_app().
"""

from .confirmation import confirmation_bp
from .api import api_bp

__all__ = [
    "confirmation_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(confirmation_bp)
    app.register_blueprint(api_bp)
