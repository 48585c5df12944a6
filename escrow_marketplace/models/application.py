"""Application model for freelancer bids on projects."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid


class ApplicationStatus(Enum):
    """Status of a freelancer's bid."""

    PENDING = "pending"          # Awaiting the client's decision
    ACCEPTED = "accepted"        # Client accepted, payment not yet confirmed
    REJECTED = "rejected"        # Client declined
    WITHDRAWN = "withdrawn"      # Freelancer pulled the bid
    HIRED = "hired"              # Payment confirmed, engagement running

    @property
    def blocks_resubmission(self) -> bool:
        """Whether this bid prevents the freelancer from bidding again."""
        return self != ApplicationStatus.WITHDRAWN


@dataclass
class Application:
    """A freelancer's proposal for a project."""

    id: str = field(default_factory=lambda: f"APP-{uuid.uuid4().hex[:8].upper()}")
    project_id: str = ""
    freelancer_id: str = ""

    # Proposal
    proposal: str = ""
    bid_amount: int = 0  # Minor currency units
    estimated_duration: str = ""

    # State
    status: ApplicationStatus = ApplicationStatus.PENDING
    paid: bool = False
    payment_id: Optional[str] = None

    # Timestamps
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        """Serialize application to dictionary."""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "freelancer_id": self.freelancer_id,
            "proposal": self.proposal,
            "bid_amount": self.bid_amount,
            "estimated_duration": self.estimated_duration,
            "status": self.status.value,
            "paid": self.paid,
            "payment_id": self.payment_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Application":
        """Deserialize application from dictionary."""
        application = cls(
            id=data["id"],
            project_id=data.get("project_id", ""),
            freelancer_id=data.get("freelancer_id", ""),
            proposal=data.get("proposal", ""),
            bid_amount=data.get("bid_amount", 0),
            estimated_duration=data.get("estimated_duration", ""),
            status=ApplicationStatus(data.get("status", "pending")),
            paid=data.get("paid", False),
            payment_id=data.get("payment_id"),
        )

        for field_name in ["created_at", "updated_at"]:
            if data.get(field_name):
                setattr(application, field_name, datetime.fromisoformat(data[field_name]))

        return application
