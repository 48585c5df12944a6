"""Dashboard statistics computed on demand from projects, applications and the ledger."""

import math
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..models.application import ApplicationStatus
from ..models.project import ProjectStatus
from .application_tracker import ApplicationTracker
from .payment_ledger import PaymentLedger
from .project_lifecycle import ENGAGED, ProjectLifecycle


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class StatsAggregator:
    """
    Read-only dashboard views.

    Nothing is cached: every call recomputes from the stores, so there are
    no counters to keep in sync with the ledger.
    """

    def __init__(
        self,
        lifecycle: ProjectLifecycle,
        tracker: ApplicationTracker,
        ledger: PaymentLedger,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.lifecycle = lifecycle
        self.tracker = tracker
        self.ledger = ledger
        self.clock = clock

    def client_stats(self, client_id: str) -> dict:
        """Dashboard numbers for a client."""
        projects = self.lifecycle.list_projects(client_id=client_id)
        by_id = {p.id: p for p in projects}

        applications = [a for a in self.tracker.list_applications() if a.project_id in by_id]

        hired = sum(
            1 for a in applications
            if a.status == ApplicationStatus.HIRED and a.paid
        )

        response_hours = [
            (a.created_at - by_id[a.project_id].created_at).total_seconds() / 3600
            for a in applications
        ]
        avg_response = _round_half_up(sum(response_hours) / len(response_hours)) if response_hours else 0

        return {
            "activeProjects": sum(1 for p in projects if p.status == ProjectStatus.ACTIVE),
            "totalProjects": len(projects),
            "completedProjects": sum(1 for p in projects if p.status == ProjectStatus.COMPLETED),
            "totalPaid": self.ledger.total_paid_by(client_id),
            "totalSpent": self.ledger.total_spent_by(client_id),
            "pendingPayments": self.ledger.pending_count(client_id),
            "hiredFreelancers": hired,
            "avgResponseTime": f"{avg_response}h",
        }

    def freelancer_stats(self, freelancer_id: str, now: Optional[datetime] = None) -> dict:
        """Dashboard numbers for a freelancer."""
        now = now or self.clock()
        applications = self.tracker.list_applications(freelancer_id=freelancer_id)
        hired_project_ids = {a.project_id for a in applications if a.status == ApplicationStatus.HIRED}
        hired_projects = [
            p for p in self.lifecycle.list_projects()
            if p.id in hired_project_ids
        ]

        total = len(applications)
        hired = sum(1 for a in applications if a.status == ApplicationStatus.HIRED)

        this_month = _month_start(now)
        last_month = _month_start(this_month - timedelta(days=1))
        next_month = _month_start(this_month + timedelta(days=32))

        return {
            "totalEarnings": self.ledger.total_earned_by(freelancer_id),
            "availableBalance": self.ledger.available_balance(freelancer_id),
            "pendingEarnings": self.ledger.pending_earnings(freelancer_id),
            "activeProjects": sum(1 for p in hired_projects if p.status in ENGAGED),
            "completedProjects": sum(1 for p in hired_projects if p.status == ProjectStatus.COMPLETED),
            "totalApplications": total,
            "pendingProposals": sum(1 for a in applications if a.status == ApplicationStatus.PENDING),
            "acceptanceRate": hired / total if total else 0.0,
            "profileViews": self.tracker.profile_views(freelancer_id),
            "thisMonthEarnings": self.ledger.earnings_between(freelancer_id, this_month, next_month),
            "lastMonthEarnings": self.ledger.earnings_between(freelancer_id, last_month, this_month),
        }

    def platform_stats(self) -> dict:
        """Counts across the whole platform, for operators."""
        projects = self.lifecycle.list_projects()
        applications = self.tracker.list_applications()

        project_counts: dict[str, int] = {}
        for project in projects:
            project_counts[project.status.value] = project_counts.get(project.status.value, 0) + 1

        application_counts: dict[str, int] = {}
        for application in applications:
            key = application.status.value
            application_counts[key] = application_counts.get(key, 0) + 1

        return {
            "total_projects": len(projects),
            "projects_by_status": project_counts,
            "total_applications": len(applications),
            "applications_by_status": application_counts,
            "payments": self.ledger.get_payment_statistics(),
        }
