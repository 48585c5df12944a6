"""Application tracking: bids, client decisions and the single hire per project."""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..models.application import Application, ApplicationStatus
from ..models.payment import PaymentStatus, PaymentType
from ..models.project import ProjectStatus
from ..results import ErrorKind, Result
from ..storage import JsonStore
from .payment_ledger import PaymentLedger, validate_amount
from .project_lifecycle import ProjectLifecycle

logger = logging.getLogger(__name__)

# Project statuses that still take bids. Staffed projects keep accepting
# them; only a second hire is refused.
OPEN_FOR_BIDS = (ProjectStatus.ACTIVE, ProjectStatus.IN_PROGRESS, ProjectStatus.IN_REVIEW)


class ApplicationTracker:
    """Manages the lifecycle of freelancer applications."""

    def __init__(
        self,
        store: JsonStore,
        lifecycle: ProjectLifecycle,
        ledger: PaymentLedger,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.ledger = ledger
        self.clock = clock

    def _load_applications(self) -> list[Application]:
        """Load all applications from storage."""
        return [Application.from_dict(a) for a in self.store.load("applications")]

    def _save_applications(self, applications: list[Application]) -> None:
        """Save all applications to storage."""
        self.store.save("applications", [a.to_dict() for a in applications])

    def get_application(self, application_id: str) -> Optional[Application]:
        """Get an application by ID."""
        return next((a for a in self._load_applications() if a.id == application_id), None)

    def list_applications(
        self,
        project_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        status: Optional[ApplicationStatus] = None,
    ) -> list[Application]:
        """List applications with optional filtering, newest first."""
        filtered = [
            a for a in self._load_applications()
            if (not project_id or a.project_id == project_id)
            and (not freelancer_id or a.freelancer_id == freelancer_id)
            and (not status or a.status == status)
        ]
        return sorted(filtered, key=lambda a: a.created_at, reverse=True)

    def submit(
        self,
        project_id: str,
        freelancer_id: str,
        proposal: str,
        bid_amount: int,
        estimated_duration: str,
    ) -> Result[Application]:
        """Submit a bid. One live bid per freelancer per project."""
        with self.store.transaction():
            project = self.lifecycle.get_project(project_id)
            if not project:
                return Result.failure(ErrorKind.NOT_FOUND, f"Project not found: {project_id}")

            if project.status not in OPEN_FOR_BIDS:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Project is not accepting applications (status: {project.status.value})",
                )

            if project.client_id == freelancer_id:
                return Result.failure(ErrorKind.FORBIDDEN, "Clients cannot apply to their own projects")

            applications = self._load_applications()
            existing = next(
                (
                    a for a in applications
                    if a.project_id == project_id
                    and a.freelancer_id == freelancer_id
                    and a.status.blocks_resubmission
                ),
                None,
            )
            if existing:
                return Result.failure(
                    ErrorKind.DUPLICATE_APPLICATION,
                    f"Freelancer {freelancer_id} already applied ({existing.id}, {existing.status.value})",
                )

            problem = validate_amount(bid_amount)
            if problem:
                return Result.failure(ErrorKind.INVALID_INPUT, f"Invalid bid: {problem}")

            now = self.clock()
            application = Application(
                project_id=project_id,
                freelancer_id=freelancer_id,
                proposal=proposal,
                bid_amount=bid_amount,
                estimated_duration=estimated_duration,
                created_at=now,
                updated_at=now,
            )
            applications.append(application)
            self._save_applications(applications)

            registered = self.lifecycle.register_applicant(project_id, freelancer_id)
            if not registered.ok:
                return registered

        logger.info("Freelancer %s applied to %s with %s", freelancer_id, project_id, application.id)
        return Result.success(application, "Application submitted")

    def _decide(
        self,
        application_id: str,
        actor_id: str,
        new_status: ApplicationStatus,
        actor_is_client: bool,
    ) -> Result[Application]:
        """Move a pending application to accepted, rejected or withdrawn."""
        with self.store.transaction():
            applications = self._load_applications()
            application = next((a for a in applications if a.id == application_id), None)

            if not application:
                return Result.failure(ErrorKind.NOT_FOUND, f"Application not found: {application_id}")

            if actor_is_client:
                project = self.lifecycle.get_project(application.project_id)
                if not project or project.client_id != actor_id:
                    return Result.failure(
                        ErrorKind.FORBIDDEN,
                        f"Client {actor_id} does not own project {application.project_id}",
                    )
            elif application.freelancer_id != actor_id:
                return Result.failure(
                    ErrorKind.FORBIDDEN,
                    f"Freelancer {actor_id} did not submit {application_id}",
                )

            if application.status != ApplicationStatus.PENDING:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot move application from {application.status.value} to {new_status.value}",
                )

            application.status = new_status
            application.updated_at = self.clock()
            self._save_applications(applications)

        logger.info("Application %s %s by %s", application_id, new_status.value, actor_id)
        return Result.success(application)

    def accept(self, application_id: str, client_id: str) -> Result[Application]:
        """Client accepts a bid. No money moves until payment is confirmed."""
        return self._decide(application_id, client_id, ApplicationStatus.ACCEPTED, actor_is_client=True)

    def reject(self, application_id: str, client_id: str) -> Result[Application]:
        """Client declines a pending bid."""
        return self._decide(application_id, client_id, ApplicationStatus.REJECTED, actor_is_client=True)

    def withdraw(self, application_id: str, freelancer_id: str) -> Result[Application]:
        """Freelancer pulls a pending bid, freeing them to bid again."""
        return self._decide(application_id, freelancer_id, ApplicationStatus.WITHDRAWN, actor_is_client=False)

    def mark_hired(self, application_id: str, payment_id: str) -> Result[Application]:
        """
        Hire an accepted applicant once their escrow payment is confirmed.

        The project's hire slot is claimed with a compare-and-set, so of two
        accepted applicants racing here only one can win; the other gets
        AlreadyStaffed and stays accepted until the client rejects it.
        Repeating a successful hire with the same payment is a no-op.
        """
        with self.store.transaction():
            applications = self._load_applications()
            application = next((a for a in applications if a.id == application_id), None)

            if not application:
                return Result.failure(ErrorKind.NOT_FOUND, f"Application not found: {application_id}")

            if application.status == ApplicationStatus.HIRED and application.payment_id == payment_id:
                return Result.success(application, "Application already hired")

            if application.status != ApplicationStatus.ACCEPTED:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Only accepted applications can be hired (status: {application.status.value})",
                )

            payment = self.ledger.get_payment(payment_id)
            if not payment:
                return Result.failure(ErrorKind.NOT_FOUND, f"Payment not found: {payment_id}")

            if (
                payment.status != PaymentStatus.COMPLETED
                or payment.type != PaymentType.PROJECT_PAYMENT
                or payment.project_id != application.project_id
                or payment.application_id not in (None, application.id)
                or payment.payee_id != application.freelancer_id
            ):
                return Result.failure(
                    ErrorKind.PAYMENT_NOT_CONFIRMED,
                    f"Payment {payment_id} is not a completed escrow deposit for {application_id}",
                )

            if payment.amount != application.bid_amount:
                return Result.failure(
                    ErrorKind.PAYMENT_NOT_CONFIRMED,
                    f"Payment amount {payment.amount} does not match bid {application.bid_amount}",
                )

            project_id = application.project_id
            if not self.store.compare_and_set("hire_slots", project_id, None, application.id):
                holder = self.store.get("hire_slots", project_id)
                logger.warning("Hire of %s refused: project %s already staffed by %s",
                               application_id, project_id, holder)
                return Result.failure(
                    ErrorKind.ALREADY_STAFFED,
                    f"Project {project_id} already has a hired application ({holder})",
                )

            advanced = self.lifecycle.advance_to_in_progress(
                project_id,
                payment_id,
                application_id=application.id,
                freelancer_id=application.freelancer_id,
            )
            if not advanced.ok:
                self.store.compare_and_set("hire_slots", project_id, application.id, None)
                return advanced

            application.status = ApplicationStatus.HIRED
            application.paid = True
            application.payment_id = payment_id
            application.updated_at = self.clock()
            self._save_applications(applications)

        logger.info("Hired %s on project %s (payment %s)", application.freelancer_id, project_id, payment_id)
        return Result.success(application, "Application hired")

    def record_profile_view(self, freelancer_id: str) -> int:
        """Count a view of a freelancer's profile."""
        return self.store.increment("profile_views", freelancer_id)

    def profile_views(self, freelancer_id: str) -> int:
        return self.store.get("profile_views", freelancer_id, 0)
