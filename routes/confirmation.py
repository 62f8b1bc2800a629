"""
Confirmation route.

Serves the confirmation PDFs captured at the end of each order, which the
run summary links to.
"""

from flask import (
    Blueprint,
    abort,
    current_app,
    send_from_directory,
)

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

confirmation_bp = Blueprint("confirmation", __name__)


@confirmation_bp.route("/confirmations/<path:name>", methods=["GET"])
def confirmation(name: str):
    """
    Return a confirmation PDF by file name.

    Only PDFs directly inside CONFIRMATIONS_DIR are served.
    """
    if not name.endswith(".pdf") or "/" in name:
        abort(404)

    logger.debug(f"Serving confirmation {name}")
    return send_from_directory(
        current_app.config["CONFIRMATIONS_DIR"],
        name,
        mimetype="application/pdf",
    )
