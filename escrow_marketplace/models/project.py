"""
Project model for client postings.

A project is posted by a client, collects applications from freelancers,
is staffed by exactly one paid hire and finally completes or is cancelled.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid


class ProjectStatus(Enum):
    """Project lifecycle status."""
    DRAFT = "draft"                  # Saved, not visible to freelancers
    ACTIVE = "active"                # Open for applications
    IN_REVIEW = "in-review"          # Freelancer delivered, client reviewing
    IN_PROGRESS = "in-progress"      # Staffed and funded
    COMPLETED = "completed"          # Client marked done
    CANCELLED = "cancelled"          # Client withdrew the project

    @property
    def is_terminal(self) -> bool:
        return self in (ProjectStatus.COMPLETED, ProjectStatus.CANCELLED)


class PaymentState(Enum):
    """Where the project's money stands."""
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"                    # Funds held in escrow
    RELEASED = "released"            # Escrow paid out to the freelancer


@dataclass
class Budget:
    """Budget range in minor currency units."""
    min: int = 0
    max: int = 0
    currency: str = "INR"

    def validate(self) -> Optional[str]:
        """Return a message describing what is wrong, or None."""
        if not isinstance(self.min, int) or not isinstance(self.max, int):
            return "Budget bounds must be integers in minor currency units"
        if self.min <= 0 or self.max <= 0:
            return "Budget bounds must be positive"
        if self.min > self.max:
            return f"Budget minimum {self.min} exceeds maximum {self.max}"
        return None

    def overlaps(self, low: Optional[int], high: Optional[int]) -> bool:
        """Check whether this budget intersects the [low, high] range."""
        if low is not None and self.max < low:
            return False
        if high is not None and self.min > high:
            return False
        return True

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max, "currency": self.currency}

    @classmethod
    def from_dict(cls, data: dict) -> "Budget":
        return cls(
            min=data.get("min", 0),
            max=data.get("max", 0),
            currency=data.get("currency", "INR"),
        )


@dataclass
class Project:
    """A client posting that freelancers apply to."""

    # Identity
    id: str = field(default_factory=lambda: f"PROJ-{uuid.uuid4().hex[:8].upper()}")
    client_id: str = ""
    title: str = ""
    description: str = ""
    skills: list[str] = field(default_factory=list)

    # Terms
    budget: Budget = field(default_factory=Budget)
    duration: str = ""
    category: str = ""

    # State
    status: ProjectStatus = ProjectStatus.ACTIVE
    payment_status: PaymentState = PaymentState.UNPAID
    escrow_id: Optional[str] = None

    # Staffing
    applicant_ids: list[str] = field(default_factory=list)
    hired_application_id: Optional[str] = None
    hired_freelancer_id: Optional[str] = None

    # Counters
    proposal_count: int = 0
    view_count: int = 0

    # Promotion
    featured: bool = False
    featured_until: Optional[datetime] = None
    featured_payment_id: Optional[str] = None

    # Timestamps
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    def is_featured(self, now: Optional[datetime] = None) -> bool:
        """Check if the promotion window is still open."""
        if not self.featured or not self.featured_until:
            return False
        return (now or datetime.utcnow()) < self.featured_until

    def add_applicant(self, freelancer_id: str) -> bool:
        """Register a freelancer as an applicant; False if already present."""
        if freelancer_id in self.applicant_ids:
            return False
        self.applicant_ids.append(freelancer_id)
        return True

    def to_dict(self) -> dict:
        """Serialize project to dictionary."""
        return {
            "id": self.id,
            "client_id": self.client_id,
            "title": self.title,
            "description": self.description,
            "skills": self.skills,
            "budget": self.budget.to_dict(),
            "duration": self.duration,
            "category": self.category,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "escrow_id": self.escrow_id,
            "applicant_ids": self.applicant_ids,
            "hired_application_id": self.hired_application_id,
            "hired_freelancer_id": self.hired_freelancer_id,
            "proposal_count": self.proposal_count,
            "view_count": self.view_count,
            "featured": self.featured,
            "featured_until": self.featured_until.isoformat() if self.featured_until else None,
            "featured_payment_id": self.featured_payment_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        """Deserialize project from dictionary."""
        project = cls(
            id=data["id"],
            client_id=data.get("client_id", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            skills=data.get("skills", []),
            budget=Budget.from_dict(data.get("budget", {})),
            duration=data.get("duration", ""),
            category=data.get("category", ""),
            status=ProjectStatus(data.get("status", "active")),
            payment_status=PaymentState(data.get("payment_status", "unpaid")),
            escrow_id=data.get("escrow_id"),
            applicant_ids=data.get("applicant_ids", []),
            hired_application_id=data.get("hired_application_id"),
            hired_freelancer_id=data.get("hired_freelancer_id"),
            proposal_count=data.get("proposal_count", 0),
            view_count=data.get("view_count", 0),
            featured=data.get("featured", False),
            featured_payment_id=data.get("featured_payment_id"),
        )

        for field_name in ["featured_until", "created_at", "updated_at", "completed_at", "cancelled_at"]:
            if data.get(field_name):
                setattr(project, field_name, datetime.fromisoformat(data[field_name]))

        return project
