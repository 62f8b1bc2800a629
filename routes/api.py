"""
API routes (JSON endpoints).

Handles:
- POST /api/runs          - Start a run for all pending orders
- GET  /api/runs/<run_id> - Poll a run's status and results
- GET  /api/batches       - Today's pending orders, grouped by restaurant
- GET  /health            - Health check endpoint
"""

from flask import (
    Blueprint,
    current_app,
    request,
)

from core.exceptions import ConfigurationError, RunInProgressError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@api_bp.route("/api/runs", methods=["POST"])
def start_run():
    """
    Start an automation run in the background.

    Optional JSON body:
        {"dry_run": true, "order_time": 1730}

    Returns 202 with the run ID to poll.
    """
    service = current_app.config.get("AUTOMATION_SERVICE")
    if not service:
        return {"error": "Automation service unavailable"}, 503

    body = request.get_json(silent=True) or {}
    dry_run = _parse_bool(body["dry_run"]) if "dry_run" in body else None

    try:
        order_time = int(body["order_time"]) if body.get("order_time") is not None else None
        run_id = service.start_run(order_time=order_time, dry_run=dry_run)
    except RunInProgressError as e:
        return {"error": e.message, "run_id": e.run_id}, 409
    except ConfigurationError as e:
        logger.error(f"Cannot start run: {e}")
        return {"error": e.message}, 503
    except (TypeError, ValueError) as e:
        return {"error": f"Invalid run settings: {e}"}, 400

    return {"run_id": run_id, "status": "running"}, 202


@api_bp.route("/api/runs/<run_id>", methods=["GET"])
def run_status(run_id: str):
    """
    Poll a run.

    Returns the RunResult once the run thread has stored it,
    ``{"status": "running"}`` while it works, and 404 for unknown runs.
    """
    service = current_app.config.get("AUTOMATION_SERVICE")
    if not service:
        return {"error": "Automation service unavailable"}, 503

    result = service.get_result(run_id)
    if result is not None:
        return dict(result.to_dict(), status="finished")

    if service.is_run_pending(run_id):
        return {"run_id": run_id, "status": "running"}

    return {"run_id": run_id, "status": "unknown", "error": "No such run"}, 404


@api_bp.route("/api/batches", methods=["GET"])
def pending_batches():
    """Today's pending orders as the next run would process them."""
    order_source = current_app.config.get("ORDER_SOURCE")
    if not order_source:
        return {"error": "Order source unavailable"}, 503

    batches = order_source.get_pending_orders_grouped_by_restaurant()
    return {"batches": [batch.to_dict() for batch in batches]}


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    if current_app.config.get("AUTOMATION_SERVICE"):
        health_status["checks"]["automation_service"] = "ok"
    else:
        health_status["checks"]["automation_service"] = "not_available"
        health_status["status"] = "degraded"

    if current_app.config.get("ORDERING_USERNAME") and current_app.config.get("ORDERING_PASSWORD"):
        health_status["checks"]["credentials"] = "ok"
    else:
        health_status["checks"]["credentials"] = "missing"
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
