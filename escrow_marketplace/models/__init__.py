"""Marketplace data models for projects, applications, and payments."""

from .project import Project, ProjectStatus, PaymentState, Budget
from .application import Application, ApplicationStatus
from .payment import Payment, PaymentStatus, PaymentType, LedgerEvent, EventKind

__all__ = [
    # Projects
    "Project",
    "ProjectStatus",
    "PaymentState",
    "Budget",
    # Applications
    "Application",
    "ApplicationStatus",
    # Payments
    "Payment",
    "PaymentStatus",
    "PaymentType",
    "LedgerEvent",
    "EventKind",
]
