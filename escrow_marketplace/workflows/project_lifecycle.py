"""Project lifecycle: posting, staffing, escrow release and completion."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..config import PlatformConfig
from ..models.payment import PaymentStatus, PaymentType
from ..models.project import Budget, PaymentState, Project, ProjectStatus
from ..results import ErrorKind, Result
from ..storage import JsonStore
from .payment_ledger import PaymentLedger

logger = logging.getLogger(__name__)

# Statuses in which a client may cancel
CANCELLABLE = (ProjectStatus.DRAFT, ProjectStatus.ACTIVE, ProjectStatus.IN_PROGRESS)

# Statuses in which the hired freelancer is engaged
ENGAGED = (ProjectStatus.IN_PROGRESS, ProjectStatus.IN_REVIEW)


class ProjectLifecycle:
    """Owns project status and payment status."""

    def __init__(
        self,
        store: JsonStore,
        ledger: PaymentLedger,
        config: Optional[PlatformConfig] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.ledger = ledger
        self.config = config or ledger.config
        self.clock = clock

    def _load_projects(self) -> list[Project]:
        """Load all projects from storage."""
        return [Project.from_dict(p) for p in self.store.load("projects")]

    def _save_projects(self, projects: list[Project]) -> None:
        """Save all projects to storage."""
        self.store.save("projects", [p.to_dict() for p in projects])

    def _modify(
        self,
        project_id: str,
        change: Callable[[Project], Optional[Result]],
    ) -> Result[Project]:
        """
        Apply change to a project inside one transaction.

        change returns a failed Result to abort without writing, or None.
        """
        with self.store.transaction():
            projects = self._load_projects()
            project = next((p for p in projects if p.id == project_id), None)

            if not project:
                return Result.failure(ErrorKind.NOT_FOUND, f"Project not found: {project_id}")

            refused = change(project)
            if refused is not None:
                logger.warning("Refused change to %s: %s", project_id, refused.message)
                return refused

            project.updated_at = self.clock()
            self._save_projects(projects)

        return Result.success(project)

    @staticmethod
    def _require_owner(project: Project, client_id: str) -> Optional[Result]:
        if project.client_id != client_id:
            return Result.failure(ErrorKind.FORBIDDEN, f"Client {client_id} does not own project {project.id}")
        return None

    def get_project(self, project_id: str) -> Optional[Project]:
        """Get a project by ID."""
        return next((p for p in self._load_projects() if p.id == project_id), None)

    def post(self, client_id: str, details: dict, draft: bool = False) -> Result[Project]:
        """Create a project; it is open for applications unless saved as a draft."""
        if not client_id:
            return Result.failure(ErrorKind.INVALID_INPUT, "client_id is required")

        title = (details.get("title") or "").strip()
        if not title:
            return Result.failure(ErrorKind.INVALID_INPUT, "Missing required field: title")

        budget_data = dict(details.get("budget") or {})
        budget_data.setdefault("currency", self.config.currency)
        budget = Budget.from_dict(budget_data)
        problem = budget.validate()
        if problem:
            return Result.failure(ErrorKind.INVALID_INPUT, problem)

        now = self.clock()
        project = Project(
            client_id=client_id,
            title=title,
            description=details.get("description", ""),
            skills=list(details.get("skills", [])),
            budget=budget,
            duration=details.get("duration", ""),
            category=details.get("category", ""),
            status=ProjectStatus.DRAFT if draft else ProjectStatus.ACTIVE,
            payment_status=PaymentState.UNPAID,
            created_at=now,
            updated_at=now,
        )

        self.store.append("projects", project.to_dict())
        logger.info("Client %s posted project %s (%s)", client_id, project.id, project.status.value)
        return Result.success(project, "Project posted")

    def publish(self, project_id: str, client_id: str) -> Result[Project]:
        """Open a draft project for applications."""
        def change(project: Project) -> Optional[Result]:
            refused = self._require_owner(project, client_id)
            if refused:
                return refused
            if project.status != ProjectStatus.DRAFT:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Only drafts can be published (status: {project.status.value})",
                )
            project.status = ProjectStatus.ACTIVE
            return None

        return self._modify(project_id, change)

    def record_view(self, project_id: str, viewer_id: Optional[str] = None) -> Result[Project]:
        """Count a view. Every call counts; viewers are not de-duplicated."""
        def change(project: Project) -> Optional[Result]:
            project.view_count += 1
            return None

        return self._modify(project_id, change)

    def register_applicant(self, project_id: str, freelancer_id: str) -> Result[Project]:
        """Count a new proposal and remember the applicant."""
        def change(project: Project) -> Optional[Result]:
            project.proposal_count += 1
            project.add_applicant(freelancer_id)
            return None

        return self._modify(project_id, change)

    def advance_to_in_progress(
        self,
        project_id: str,
        payment_id: str,
        application_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
    ) -> Result[Project]:
        """Mark the project staffed and funded once a hire is confirmed."""
        def change(project: Project) -> Optional[Result]:
            if project.status != ProjectStatus.ACTIVE:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot start project in status: {project.status.value}",
                )
            project.status = ProjectStatus.IN_PROGRESS
            project.payment_status = PaymentState.PAID
            project.escrow_id = payment_id
            project.hired_application_id = application_id
            project.hired_freelancer_id = freelancer_id
            return None

        result = self._modify(project_id, change)
        if result.ok:
            logger.info("Project %s in progress, escrow %s", project_id, payment_id)
        return result

    def request_review(self, project_id: str, freelancer_id: str) -> Result[Project]:
        """Hired freelancer hands the work over for the client's review."""
        def change(project: Project) -> Optional[Result]:
            if project.hired_freelancer_id != freelancer_id:
                return Result.failure(
                    ErrorKind.FORBIDDEN,
                    f"Freelancer {freelancer_id} is not hired on project {project.id}",
                )
            if project.status != ProjectStatus.IN_PROGRESS:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot request review in status: {project.status.value}",
                )
            project.status = ProjectStatus.IN_REVIEW
            return None

        return self._modify(project_id, change)

    def release_payment(self, project_id: str, client_id: str, reason: str = "") -> Result[Project]:
        """
        Release the project's escrow to the hired freelancer.

        The project stays open; the client marks completion separately.
        """
        def change(project: Project) -> Optional[Result]:
            refused = self._require_owner(project, client_id)
            if refused:
                return refused
            if project.payment_status == PaymentState.RELEASED:
                return Result.failure(
                    ErrorKind.ALREADY_RELEASED,
                    f"Escrow for project {project.id} already released",
                )
            if project.status not in ENGAGED or project.payment_status != PaymentState.PAID:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot release payment in status {project.status.value}/{project.payment_status.value}",
                )

            released = self.ledger.release_escrow(project.id, reason, payment_id=project.escrow_id)
            if not released.ok:
                return released

            project.payment_status = PaymentState.RELEASED
            return None

        return self._modify(project_id, change)

    def complete(self, project_id: str, client_id: str) -> Result[Project]:
        """Client marks the engagement done. Escrow must be released first."""
        def change(project: Project) -> Optional[Result]:
            refused = self._require_owner(project, client_id)
            if refused:
                return refused
            if project.status not in ENGAGED:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot complete project in status: {project.status.value}",
                )
            if project.payment_status != PaymentState.RELEASED:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    "Release the escrowed payment before completing the project",
                )
            project.status = ProjectStatus.COMPLETED
            project.completed_at = self.clock()
            return None

        return self._modify(project_id, change)

    def cancel(self, project_id: str, client_id: str, reason: str = "") -> Result[Project]:
        """Client withdraws the project. Held escrow must be refunded first."""
        def change(project: Project) -> Optional[Result]:
            refused = self._require_owner(project, client_id)
            if refused:
                return refused
            if project.status not in CANCELLABLE:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot cancel project in status: {project.status.value}",
                )
            if project.payment_status == PaymentState.PAID:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Project {project.id} holds escrow {project.escrow_id}; refund it before cancelling",
                )
            project.status = ProjectStatus.CANCELLED
            project.cancelled_at = self.clock()
            return None

        result = self._modify(project_id, change)
        if result.ok:
            logger.info("Project %s cancelled: %s", project_id, reason)
        return result

    def payment_refunded(self, project_id: str, payment_id: str) -> Result[Project]:
        """Drop the escrow reference after the gateway refunded it."""
        def change(project: Project) -> Optional[Result]:
            if project.escrow_id == payment_id and project.payment_status == PaymentState.PAID:
                project.payment_status = PaymentState.UNPAID
                project.escrow_id = None
            return None

        return self._modify(project_id, change)

    def feature(self, project_id: str, payment_id: str) -> Result[Project]:
        """Promote a project for the featured window after a confirmed listing payment."""
        payment = self.ledger.get_payment(payment_id)

        def change(project: Project) -> Optional[Result]:
            if (
                payment is None
                or payment.type != PaymentType.FEATURED_LISTING
                or payment.project_id != project.id
                or payment.status != PaymentStatus.COMPLETED
            ):
                return Result.failure(
                    ErrorKind.PAYMENT_NOT_CONFIRMED,
                    f"No completed featured listing payment {payment_id} for project {project.id}",
                )
            if project.featured_payment_id == payment_id:
                return None
            if project.status.is_terminal:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot feature project in status: {project.status.value}",
                )
            project.featured = True
            project.featured_until = self.clock() + timedelta(days=self.config.feature_days)
            project.featured_payment_id = payment_id
            return None

        return self._modify(project_id, change)

    def list_projects(
        self,
        client_id: Optional[str] = None,
        status: Optional[ProjectStatus] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        min_budget: Optional[int] = None,
        max_budget: Optional[int] = None,
    ) -> list[Project]:
        """List projects with optional filtering, newest first."""
        needle = search.lower() if search else None

        filtered = []
        for project in self._load_projects():
            if client_id and project.client_id != client_id:
                continue

            if status and project.status != status:
                continue

            if category and project.category != category:
                continue

            if needle:
                haystack = " ".join([project.title, project.description, *project.skills]).lower()
                if needle not in haystack:
                    continue

            if not project.budget.overlaps(min_budget, max_budget):
                continue

            filtered.append(project)

        return sorted(filtered, key=lambda p: p.created_at, reverse=True)

    def list_available(self, **filters) -> list[Project]:
        """Projects open for applications, featured ones first."""
        now = self.clock()
        projects = self.list_projects(status=ProjectStatus.ACTIVE, **filters)
        return sorted(projects, key=lambda p: not p.is_featured(now))
