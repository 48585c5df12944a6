"""Payment ledger entries and the audit events recorded against them."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid


class PaymentStatus(Enum):
    """Status of a ledger entry."""

    CREATED = "created"          # Intent recorded, not yet sent to the gateway
    PENDING = "pending"          # Gateway accepted the charge, awaiting callback
    COMPLETED = "completed"      # Gateway confirmed, funds held
    FAILED = "failed"            # Gateway reported failure
    REFUNDED = "refunded"        # Gateway refunded the payer

    @property
    def is_final(self) -> bool:
        return self in (PaymentStatus.FAILED, PaymentStatus.REFUNDED)


class PaymentType(Enum):
    """What a payment buys."""

    PROJECT_PAYMENT = "project_payment"      # Escrow deposit for a hire
    FEATURED_LISTING = "featured_listing"    # Promote a project for a week
    PROFILE_BOOST = "profile_boost"          # Promote a freelancer profile


class EventKind(Enum):
    """Kinds of ledger events."""

    CREATED = "created"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    REFUNDED = "refunded"
    ESCROW_RELEASED = "escrow_released"
    FEE_COLLECTED = "fee_collected"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Payment:
    """A monetary transaction tied to a project and optionally an application.

    Amounts are integers in minor currency units.
    """

    # Identity
    id: str = field(default_factory=lambda: f"PAY-{uuid.uuid4().hex[:8].upper()}")
    payer_id: str = ""
    payee_id: Optional[str] = None  # None for platform revenue
    project_id: str = ""
    application_id: Optional[str] = None

    # Classification
    type: PaymentType = PaymentType.PROJECT_PAYMENT
    status: PaymentStatus = PaymentStatus.CREATED

    # Amount
    amount: int = 0
    currency: str = "INR"
    platform_fee: int = 0  # Set when escrow is released

    # Gateway
    external_reference: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    # Escrow
    escrow_released_at: Optional[datetime] = None
    release_reason: Optional[str] = None

    # Dates
    created_at: datetime = field(default_factory=datetime.utcnow)
    confirmed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    # Notes
    failure_reason: Optional[str] = None

    @property
    def is_released(self) -> bool:
        return self.escrow_released_at is not None

    @property
    def net_amount(self) -> int:
        """Amount paid out to the payee after the platform fee."""
        return self.amount - self.platform_fee

    @property
    def holds_escrow(self) -> bool:
        """Completed project payment whose funds are still held."""
        return (
            self.type == PaymentType.PROJECT_PAYMENT
            and self.status == PaymentStatus.COMPLETED
            and not self.is_released
        )

    def to_dict(self) -> dict:
        """Serialize payment to dictionary."""
        return {
            "id": self.id,
            "payer_id": self.payer_id,
            "payee_id": self.payee_id,
            "project_id": self.project_id,
            "application_id": self.application_id,
            "type": self.type.value,
            "status": self.status.value,
            "amount": self.amount,
            "currency": self.currency,
            "platform_fee": self.platform_fee,
            "external_reference": self.external_reference,
            "metadata": self.metadata,
            "escrow_released_at": _iso(self.escrow_released_at),
            "release_reason": self.release_reason,
            "created_at": self.created_at.isoformat(),
            "confirmed_at": _iso(self.confirmed_at),
            "refunded_at": _iso(self.refunded_at),
            "failure_reason": self.failure_reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Payment":
        """Deserialize payment from dictionary."""
        payment = cls(
            id=data.get("id", f"PAY-{uuid.uuid4().hex[:8].upper()}"),
            payer_id=data.get("payer_id", ""),
            payee_id=data.get("payee_id"),
            project_id=data.get("project_id", ""),
            application_id=data.get("application_id"),
            type=PaymentType(data.get("type", "project_payment")),
            status=PaymentStatus(data.get("status", "created")),
            amount=data.get("amount", 0),
            currency=data.get("currency", "INR"),
            platform_fee=data.get("platform_fee", 0),
            external_reference=data.get("external_reference"),
            metadata=data.get("metadata", {}),
            release_reason=data.get("release_reason"),
            failure_reason=data.get("failure_reason"),
        )

        for field_name in ["escrow_released_at", "created_at", "confirmed_at", "refunded_at"]:
            if data.get(field_name):
                setattr(payment, field_name, datetime.fromisoformat(data[field_name]))

        return payment


@dataclass
class LedgerEvent:
    """An immutable audit record of something that happened to a payment."""

    id: str = field(default_factory=lambda: f"EVT-{uuid.uuid4().hex[:8].upper()}")
    payment_id: str = ""
    project_id: str = ""
    kind: EventKind = EventKind.CREATED
    amount: int = 0
    detail: dict = field(default_factory=dict)
    recorded_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "project_id": self.project_id,
            "kind": self.kind.value,
            "amount": self.amount,
            "detail": self.detail,
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LedgerEvent":
        return cls(
            id=data["id"],
            payment_id=data.get("payment_id", ""),
            project_id=data.get("project_id", ""),
            kind=EventKind(data["kind"]),
            amount=data.get("amount", 0),
            detail=data.get("detail", {}),
            recorded_at=datetime.fromisoformat(data["recorded_at"]),
        )
