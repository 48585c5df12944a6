"""In-process client exposing the marketplace calls made by the dashboard."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ..config import PlatformConfig
from ..gateway import PaymentGateway, SandboxGateway
from ..models.application import ApplicationStatus
from ..models.payment import PaymentType
from ..models.project import ProjectStatus
from ..results import ErrorKind, Result
from ..storage import JsonStore
from ..workflows.application_tracker import ApplicationTracker
from ..workflows.payment_ledger import PaymentLedger
from ..workflows.project_lifecycle import ProjectLifecycle
from ..workflows.stats_aggregator import StatsAggregator

logger = logging.getLogger(__name__)

GATEWAY_STATUSES = ("completed", "failed", "refunded")


def _int_or_none(value) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


class MarketplaceClient:
    """
    Client for the marketplace lifecycle engine.

    Every method returns the dashboard's response shape:
    {"success": True, "data": ...} or
    {"success": False, "error": <ErrorKind value>, "message": ...}.

    Usage:
        client = MarketplaceClient(data_dir=Path("data"))

        project = client.post_project("client-1", {
            "title": "Landing page",
            "budget": {"min": 10000, "max": 20000},
        })

        client.submit_application(
            project_id=project["data"]["id"],
            freelancer_id="freelancer-1",
            proposal="I can build it",
            bid_amount=15000,
            estimated_duration="2 weeks",
        )
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        config: Optional[PlatformConfig] = None,
        gateway: Optional[PaymentGateway] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Initialize the client.

        Args:
            data_dir: Data directory; overrides config.data_dir
            config: Platform configuration (defaults apply when omitted)
            gateway: Payment gateway used to start charges
            clock: Source of the current time
        """
        self.config = config or PlatformConfig()
        if data_dir is not None:
            self.config.data_dir = Path(data_dir)

        self.store = JsonStore(self.config.data_dir)
        self.gateway = gateway or SandboxGateway()
        self.ledger = PaymentLedger(self.store, self.config, clock=clock)
        self.lifecycle = ProjectLifecycle(self.store, self.ledger, self.config, clock=clock)
        self.tracker = ApplicationTracker(self.store, self.lifecycle, self.ledger, clock=clock)
        self.stats = StatsAggregator(self.lifecycle, self.tracker, self.ledger, clock=clock)

    # === Projects ===

    def post_project(self, client_id: str, details: dict, draft: bool = False) -> dict:
        """Post a project for a client."""
        return self.lifecycle.post(client_id, details, draft=draft).to_response()

    def publish_project(self, project_id: str, client_id: str) -> dict:
        return self.lifecycle.publish(project_id, client_id).to_response()

    def get_project(self, project_id: str) -> dict:
        project = self.lifecycle.get_project(project_id)
        if not project:
            return Result.failure(ErrorKind.NOT_FOUND, f"Project not found: {project_id}").to_response()
        return Result.success(project).to_response()

    def list_projects(self, filters: Optional[dict] = None) -> dict:
        """
        List projects.

        Filter keys:
            clientId, status, category, search, minBudget, maxBudget
            available: only projects open for applications, featured first
        """
        filters = filters or {}
        try:
            status = ProjectStatus(filters["status"]) if filters.get("status") else None
            min_budget = _int_or_none(filters.get("minBudget"))
            max_budget = _int_or_none(filters.get("maxBudget"))
        except ValueError as e:
            return Result.failure(ErrorKind.INVALID_INPUT, str(e)).to_response()

        query = {
            "category": filters.get("category"),
            "search": filters.get("search"),
            "min_budget": min_budget,
            "max_budget": max_budget,
        }
        if filters.get("available"):
            projects = self.lifecycle.list_available(**query)
        else:
            projects = self.lifecycle.list_projects(client_id=filters.get("clientId"), status=status, **query)

        return Result.success(projects).to_response()

    def record_view(self, project_id: str, viewer_id: Optional[str] = None) -> dict:
        return self.lifecycle.record_view(project_id, viewer_id).to_response()

    def request_review(self, project_id: str, freelancer_id: str) -> dict:
        return self.lifecycle.request_review(project_id, freelancer_id).to_response()

    def complete_project(self, project_id: str, client_id: str) -> dict:
        return self.lifecycle.complete(project_id, client_id).to_response()

    def cancel_project(self, project_id: str, client_id: str, reason: str = "") -> dict:
        return self.lifecycle.cancel(project_id, client_id, reason).to_response()

    def feature_project(self, project_id: str, payment_id: str) -> dict:
        return self.lifecycle.feature(project_id, payment_id).to_response()

    # === Applications ===

    def list_applications(self, filters: Optional[dict] = None) -> dict:
        """
        List applications.

        Filter keys: projectId, freelancerId, status
        """
        filters = filters or {}
        try:
            status = ApplicationStatus(filters["status"]) if filters.get("status") else None
        except ValueError as e:
            return Result.failure(ErrorKind.INVALID_INPUT, str(e)).to_response()

        applications = self.tracker.list_applications(
            project_id=filters.get("projectId"),
            freelancer_id=filters.get("freelancerId"),
            status=status,
        )
        return Result.success(applications).to_response()

    def submit_application(
        self,
        project_id: str,
        freelancer_id: str,
        proposal: str,
        bid_amount: int,
        estimated_duration: str,
    ) -> dict:
        return self.tracker.submit(
            project_id, freelancer_id, proposal, bid_amount, estimated_duration
        ).to_response()

    def accept_application(self, application_id: str, client_id: str) -> dict:
        return self.tracker.accept(application_id, client_id).to_response()

    def reject_application(self, application_id: str, client_id: str) -> dict:
        return self.tracker.reject(application_id, client_id).to_response()

    def withdraw_application(self, application_id: str, freelancer_id: str) -> dict:
        return self.tracker.withdraw(application_id, freelancer_id).to_response()

    def record_profile_view(self, freelancer_id: str) -> dict:
        views = self.tracker.record_profile_view(freelancer_id)
        return Result.success({"freelancerId": freelancer_id, "profileViews": views}).to_response()

    # === Payments ===

    def initiate_payment(self, kind: str, amount: int, refs: dict) -> dict:
        """
        Record a payment intent and start the charge with the gateway.

        Args:
            kind: project_payment, featured_listing or profile_boost
            amount: Amount in minor currency units
            refs: payerId, and depending on kind projectId, applicationId,
                payeeId; optional metadata (flat key/value map)

        The entry stays pending until handle_gateway_callback reports the
        outcome. If the gateway cannot start the charge, the entry is marked
        failed and returned under ``data`` of a PaymentNotConfirmed failure.
        """
        try:
            payment_type = PaymentType(kind)
        except ValueError:
            return Result.failure(ErrorKind.INVALID_INPUT, f"Unknown payment kind: {kind}").to_response()

        payer_id = refs.get("payerId")
        project_id = refs.get("projectId")
        application_id = refs.get("applicationId")
        payee_id = refs.get("payeeId")

        if payment_type != PaymentType.PROFILE_BOOST:
            project = self.lifecycle.get_project(project_id) if project_id else None
            if not project:
                return Result.failure(ErrorKind.NOT_FOUND, f"Project not found: {project_id}").to_response()
            if project.client_id != payer_id:
                return Result.failure(
                    ErrorKind.FORBIDDEN, f"Payer {payer_id} does not own project {project_id}"
                ).to_response()

        if payment_type == PaymentType.PROJECT_PAYMENT:
            application = self.tracker.get_application(application_id) if application_id else None
            if not application or application.project_id != project_id:
                return Result.failure(
                    ErrorKind.NOT_FOUND, f"Application not found on project: {application_id}"
                ).to_response()
            if application.status != ApplicationStatus.ACCEPTED:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Only accepted applications can be paid (status: {application.status.value})",
                ).to_response()
            if amount != application.bid_amount:
                return Result.failure(
                    ErrorKind.INVALID_INPUT,
                    f"Payment amount {amount} does not match bid {application.bid_amount}",
                ).to_response()
            payee_id = application.freelancer_id
        else:
            application_id = None

        created = self.ledger.create_payment(
            payer_id=payer_id,
            payee_id=payee_id,
            project_id=project_id or "",
            application_id=application_id,
            payment_type=payment_type,
            amount=amount,
            metadata=refs.get("metadata"),
        )
        if not created.ok:
            return created.to_response()

        payment = created.value
        charge_metadata = dict(payment.metadata, payment_id=payment.id, kind=payment_type.value)
        try:
            reference = self.gateway.charge(payment.amount, payment.currency, charge_metadata)
        except Exception as e:
            logger.exception("Gateway charge failed for %s", payment.id)
            failed = self.ledger.fail_payment(payment.id, f"gateway charge failed: {e}")
            return Result.failure(
                ErrorKind.PAYMENT_NOT_CONFIRMED,
                f"Gateway could not start the charge for {payment.id}: {e}",
                value=failed.value,
            ).to_response()

        return self.ledger.mark_pending(payment.id, reference).to_response()

    def handle_gateway_callback(self, payment_id: str, external_reference: str, status: str) -> dict:
        """
        Apply a terminal status reported by the gateway.

        Safe to deliver more than once. A confirmed project payment hires
        the accepted application it was made for; a confirmed featured
        listing promotes its project.
        """
        if status not in GATEWAY_STATUSES:
            return Result.failure(ErrorKind.INVALID_INPUT, f"Unknown gateway status: {status}").to_response()

        if status == "failed":
            return self.ledger.fail_payment(payment_id, f"gateway reported failure ({external_reference})").to_response()

        if status == "refunded":
            refunded = self.ledger.refund_payment(payment_id, f"gateway refund ({external_reference})")
            if refunded.ok and refunded.value.project_id:
                self.lifecycle.payment_refunded(refunded.value.project_id, payment_id)
            return refunded.to_response()

        confirmed = self.ledger.confirm_payment(payment_id, external_reference)
        if not confirmed.ok:
            return confirmed.to_response()

        payment = confirmed.value
        data = {"payment": payment.to_dict()}

        if payment.type == PaymentType.PROJECT_PAYMENT and payment.application_id:
            hired = self.tracker.mark_hired(payment.application_id, payment.id)
            if not hired.ok:
                return hired.to_response()
            data["application"] = hired.value.to_dict()

        elif payment.type == PaymentType.FEATURED_LISTING:
            featured = self.lifecycle.feature(payment.project_id, payment.id)
            if not featured.ok:
                return featured.to_response()
            data["project"] = featured.value.to_dict()

        return Result.success(data).to_response()

    def release_escrow(
        self,
        client_id: str,
        project_id: Optional[str] = None,
        escrow_id: Optional[str] = None,
        reason: str = "",
    ) -> dict:
        """Release a project's escrow, addressed by project or by escrow payment id."""
        if not project_id and escrow_id:
            payment = self.ledger.get_payment(escrow_id)
            if not payment:
                return Result.failure(ErrorKind.NOT_FOUND, f"Escrow not found: {escrow_id}").to_response()
            project_id = payment.project_id

        if not project_id:
            return Result.failure(ErrorKind.INVALID_INPUT, "projectId or escrowId is required").to_response()

        return self.lifecycle.release_payment(project_id, client_id, reason).to_response()

    def payment_history(self, payment_id: str) -> dict:
        """Audit trail for one payment."""
        if not self.ledger.get_payment(payment_id):
            return Result.failure(ErrorKind.NOT_FOUND, f"Payment not found: {payment_id}").to_response()
        return Result.success(self.ledger.replay(payment_id)).to_response()

    # === Dashboards ===

    def get_client_stats(self, client_id: str) -> dict:
        if not client_id:
            return Result.failure(ErrorKind.INVALID_INPUT, "Client ID is required").to_response()
        return Result.success(self.stats.client_stats(client_id)).to_response()

    def get_freelancer_stats(self, freelancer_id: str) -> dict:
        if not freelancer_id:
            return Result.failure(ErrorKind.INVALID_INPUT, "Freelancer ID is required").to_response()
        return Result.success(self.stats.freelancer_stats(freelancer_id)).to_response()

    def get_platform_stats(self) -> dict:
        return Result.success(self.stats.platform_stats()).to_response()
