"""
Flask REST API routes for the escrow marketplace.

This module provides HTTP endpoints for:
- Posting, browsing and closing out projects
- Submitting and deciding on applications
- Initiating payments, gateway callbacks and escrow release
- Client, freelancer and platform dashboards

To run the server:
    python -m escrow_marketplace.api.routes

Or with Flask:
    FLASK_APP=escrow_marketplace.api.routes:create_app flask run
"""

import logging
import os
from pathlib import Path

try:
    from flask import Flask, request, jsonify, g
    from werkzeug.exceptions import HTTPException
except ImportError:
    Flask = None

from ..config import PlatformConfig, configure_logging, load_config
from ..gateway import PaymentGateway, SandboxGateway
from ..results import ErrorKind

logger = logging.getLogger(__name__)


def _status_for(response: dict, created: bool = False) -> int:
    if response["success"]:
        return 201 if created else 200
    return ErrorKind(response["error"]).http_status


def _reply(response: dict, created: bool = False):
    return jsonify(response), _status_for(response, created)


def _bad_request(message: str):
    return jsonify({"success": False, "error": ErrorKind.INVALID_INPUT.value, "message": message}), 400


def create_app(
    data_dir: Path = None,
    config: PlatformConfig = None,
    gateway: PaymentGateway = None,
) -> "Flask":
    """Create and configure the Flask application."""
    if Flask is None:
        raise ImportError("Flask is required for the API. Install with: pip install escrow-marketplace[api]")

    config = config or load_config()
    if data_dir is not None:
        config.data_dir = Path(data_dir)

    app = Flask(__name__)
    app.config["DATA_DIR"] = config.data_dir
    app.config["PLATFORM"] = config
    # One gateway per app so charges survive across requests
    app.config["GATEWAY"] = gateway or SandboxGateway()

    from .client import MarketplaceClient

    @app.before_request
    def init_client():
        g.client = MarketplaceClient(
            config=app.config["PLATFORM"],
            gateway=app.config["GATEWAY"],
        )

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return jsonify({"success": False, "message": error.description}), error.code
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "message": "Internal server error"}), 500

    # === Health Check ===

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({"status": "healthy", "version": "0.1.0"})

    # === Projects ===

    @app.route("/api/v1/projects", methods=["GET"])
    def list_projects():
        """
        List projects.

        Query params:
            clientId: Only this client's projects
            status: Project status
            category: Exact category
            search: Text in title, description or skills
            minBudget / maxBudget: Budget range overlap (minor units)
        """
        return _reply(g.client.list_projects(request.args.to_dict()))

    @app.route("/api/v1/projects/available", methods=["GET"])
    def list_available_projects():
        """Projects open for applications, featured first."""
        filters = request.args.to_dict()
        filters["available"] = True
        return _reply(g.client.list_projects(filters))

    @app.route("/api/v1/projects", methods=["POST"])
    def post_project():
        """
        Post a project.

        Request body:
            clientId: Posting client
            title, description, skills, budget {min, max, currency},
            duration, category
            draft: (optional) Keep the project out of listings
        """
        data = request.get_json(silent=True)
        if not data:
            return _bad_request("Request body required")

        response = g.client.post_project(data.get("clientId"), data, draft=bool(data.get("draft")))
        return _reply(response, created=True)

    @app.route("/api/v1/projects/<project_id>", methods=["GET"])
    def get_project(project_id: str):
        return _reply(g.client.get_project(project_id))

    @app.route("/api/v1/projects/<project_id>/publish", methods=["POST"])
    def publish_project(project_id: str):
        data = request.get_json(silent=True) or {}
        return _reply(g.client.publish_project(project_id, data.get("clientId")))

    @app.route("/api/v1/projects/<project_id>/view", methods=["POST"])
    def record_view(project_id: str):
        data = request.get_json(silent=True) or {}
        return _reply(g.client.record_view(project_id, data.get("viewerId")))

    @app.route("/api/v1/projects/<project_id>/review", methods=["POST"])
    def request_review(project_id: str):
        data = request.get_json(silent=True) or {}
        return _reply(g.client.request_review(project_id, data.get("freelancerId")))

    @app.route("/api/v1/projects/<project_id>/complete", methods=["POST"])
    def complete_project(project_id: str):
        data = request.get_json(silent=True) or {}
        return _reply(g.client.complete_project(project_id, data.get("clientId")))

    @app.route("/api/v1/projects/<project_id>/cancel", methods=["POST"])
    def cancel_project(project_id: str):
        data = request.get_json(silent=True) or {}
        return _reply(g.client.cancel_project(project_id, data.get("clientId"), data.get("reason", "")))

    @app.route("/api/v1/projects/<project_id>/feature", methods=["POST"])
    def feature_project(project_id: str):
        data = request.get_json(silent=True) or {}
        return _reply(g.client.feature_project(project_id, data.get("paymentId")))

    # === Applications ===

    @app.route("/api/v1/applications", methods=["GET"])
    def list_applications():
        """
        List applications.

        Query params:
            projectId: Filter by project
            freelancerId: Filter by freelancer
            status: Application status
        """
        return _reply(g.client.list_applications(request.args.to_dict()))

    @app.route("/api/v1/applications", methods=["POST"])
    def submit_application():
        """
        Apply to a project.

        Request body:
            projectId, freelancerId, proposal,
            bidAmount (minor units), estimatedDuration
        """
        data = request.get_json(silent=True)
        if not data:
            return _bad_request("Request body required")

        response = g.client.submit_application(
            project_id=data.get("projectId"),
            freelancer_id=data.get("freelancerId"),
            proposal=data.get("proposal", ""),
            bid_amount=data.get("bidAmount"),
            estimated_duration=data.get("estimatedDuration", ""),
        )
        return _reply(response, created=True)

    @app.route("/api/v1/applications/<application_id>/accept", methods=["PUT"])
    def accept_application(application_id: str):
        data = request.get_json(silent=True) or {}
        return _reply(g.client.accept_application(application_id, data.get("clientId")))

    @app.route("/api/v1/applications/<application_id>/reject", methods=["PUT"])
    def reject_application(application_id: str):
        data = request.get_json(silent=True) or {}
        return _reply(g.client.reject_application(application_id, data.get("clientId")))

    @app.route("/api/v1/applications/<application_id>/withdraw", methods=["PUT"])
    def withdraw_application(application_id: str):
        data = request.get_json(silent=True) or {}
        return _reply(g.client.withdraw_application(application_id, data.get("freelancerId")))

    # === Payments ===

    @app.route("/api/v1/payments", methods=["POST"])
    def initiate_payment():
        """
        Start a payment.

        Request body:
            kind: project_payment, featured_listing or profile_boost
            amount: Amount in minor units
            payerId, projectId, applicationId, payeeId, metadata
        """
        data = request.get_json(silent=True)
        if not data:
            return _bad_request("Request body required")

        response = g.client.initiate_payment(data.get("kind"), data.get("amount"), data)
        return _reply(response, created=True)

    @app.route("/api/v1/payments/callback", methods=["POST"])
    def gateway_callback():
        """
        Gateway notification.

        Request body:
            paymentId, externalReference, status (completed, failed, refunded)
        """
        data = request.get_json(silent=True)
        if not data:
            return _bad_request("Request body required")

        return _reply(g.client.handle_gateway_callback(
            data.get("paymentId"),
            data.get("externalReference"),
            data.get("status"),
        ))

    @app.route("/api/v1/payments/release-escrow", methods=["POST"])
    def release_escrow():
        """
        Release escrowed funds to the hired freelancer.

        Request body:
            clientId: Project owner
            projectId or escrowId: What to release
            reason: (optional) Audit note
        """
        data = request.get_json(silent=True)
        if not data:
            return _bad_request("Request body required")

        return _reply(g.client.release_escrow(
            client_id=data.get("clientId"),
            project_id=data.get("projectId"),
            escrow_id=data.get("escrowId"),
            reason=data.get("reason", ""),
        ))

    @app.route("/api/v1/payments/<payment_id>/history", methods=["GET"])
    def payment_history(payment_id: str):
        return _reply(g.client.payment_history(payment_id))

    # === Dashboards ===

    @app.route("/api/v1/stats/client", methods=["GET"])
    def client_stats():
        return _reply(g.client.get_client_stats(request.args.get("clientId")))

    @app.route("/api/v1/stats/freelancer", methods=["GET"])
    def freelancer_stats():
        return _reply(g.client.get_freelancer_stats(request.args.get("freelancerId")))

    @app.route("/api/v1/stats/platform", methods=["GET"])
    def platform_stats():
        return _reply(g.client.get_platform_stats())

    @app.route("/api/v1/freelancers/<freelancer_id>/view", methods=["POST"])
    def record_profile_view(freelancer_id: str):
        return _reply(g.client.record_profile_view(freelancer_id))

    return app


def main():
    """Run the API server."""
    config = load_config(os.environ.get("MARKET_CONFIG"))
    configure_logging(config.log_level)

    app = create_app(config=config)
    port = int(os.environ.get("PORT", 8000))
    debug = os.environ.get("DEBUG", "false").lower() == "true"

    logger.info("Starting escrow marketplace API on port %d", port)
    app.run(host="0.0.0.0", port=port, debug=debug)


if __name__ == "__main__":
    main()
