"""Payment ledger: escrow deposits, confirmations, releases and refunds."""

import logging
from datetime import datetime
from typing import Callable, Optional

import jsonschema

from ..config import PlatformConfig
from ..models.payment import EventKind, LedgerEvent, Payment, PaymentStatus, PaymentType
from ..results import ErrorKind, Result
from ..storage import JsonStore

logger = logging.getLogger(__name__)

# Payment intent metadata is an opaque flat map passed through untouched
METADATA_SCHEMA = {
    "type": "object",
    "maxProperties": 50,
    "propertyNames": {"type": "string", "minLength": 1, "maxLength": 64},
    "additionalProperties": {"type": ["string", "number", "boolean", "null"]},
}


def validate_amount(amount) -> Optional[str]:
    """Return a message if amount is not a positive integer, else None."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        return f"Amount must be an integer in minor currency units, got {amount!r}"
    if amount <= 0:
        return f"Amount must be positive, got {amount}"
    return None


class PaymentLedger:
    """
    Source of truth for how much money has moved.

    Entries are never deleted. Every state change appends a LedgerEvent or
    stamps a field on the entry, so the history can be replayed.
    """

    def __init__(
        self,
        store: JsonStore,
        config: Optional[PlatformConfig] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.config = config or PlatformConfig(data_dir=store.data_dir)
        self.clock = clock

    def _load_payments(self) -> list[Payment]:
        """Load all payments from storage."""
        return [Payment.from_dict(p) for p in self.store.load("payments")]

    def _save_payments(self, payments: list[Payment]) -> None:
        """Save all payments to storage."""
        self.store.save("payments", [p.to_dict() for p in payments])

    def _record(self, payment: Payment, kind: EventKind, amount: Optional[int] = None, **detail) -> None:
        event = LedgerEvent(
            payment_id=payment.id,
            project_id=payment.project_id,
            kind=kind,
            amount=payment.amount if amount is None else amount,
            detail=detail,
            recorded_at=self.clock(),
        )
        self.store.append("ledger_events", event.to_dict())

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        """Get a payment by ID."""
        return next((p for p in self._load_payments() if p.id == payment_id), None)

    def list_payments(
        self,
        payer_id: Optional[str] = None,
        payee_id: Optional[str] = None,
        project_id: Optional[str] = None,
        status: Optional[PaymentStatus] = None,
        payment_type: Optional[PaymentType] = None,
    ) -> list[Payment]:
        """List payments with optional filtering, newest first."""
        payments = []
        for payment in self._load_payments():
            if payer_id and payment.payer_id != payer_id:
                continue
            if payee_id and payment.payee_id != payee_id:
                continue
            if project_id and payment.project_id != project_id:
                continue
            if status and payment.status != status:
                continue
            if payment_type and payment.type != payment_type:
                continue
            payments.append(payment)

        return sorted(payments, key=lambda p: p.created_at, reverse=True)

    def replay(self, payment_id: str) -> list[LedgerEvent]:
        """Return the recorded history of a payment in order."""
        events = [
            LedgerEvent.from_dict(e)
            for e in self.store.load("ledger_events")
            if e["payment_id"] == payment_id
        ]
        return sorted(events, key=lambda e: e.recorded_at)

    # === State changes ===

    def create_payment(
        self,
        payer_id: str,
        payee_id: Optional[str],
        project_id: str,
        application_id: Optional[str],
        payment_type: PaymentType,
        amount: int,
        currency: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Result[Payment]:
        """Record a new payment intent with status created."""
        problem = validate_amount(amount)
        if problem:
            return Result.failure(ErrorKind.INVALID_INPUT, problem)

        if not payer_id:
            return Result.failure(ErrorKind.INVALID_INPUT, "payer_id is required")

        # Profile boosts promote a freelancer, not a project
        if not project_id and payment_type != PaymentType.PROFILE_BOOST:
            return Result.failure(ErrorKind.INVALID_INPUT, f"project_id is required for {payment_type.value}")

        metadata = metadata or {}
        try:
            jsonschema.validate(metadata, METADATA_SCHEMA)
        except jsonschema.ValidationError as e:
            return Result.failure(ErrorKind.INVALID_INPUT, f"Invalid payment metadata: {e.message}")

        payment = Payment(
            payer_id=payer_id,
            payee_id=payee_id,
            project_id=project_id,
            application_id=application_id,
            type=payment_type,
            amount=amount,
            currency=currency or self.config.currency,
            metadata=metadata,
            created_at=self.clock(),
        )

        with self.store.transaction():
            self.store.append("payments", payment.to_dict())
            self._record(payment, EventKind.CREATED)

        logger.info("Created %s %s for %s (%d %s)", payment.type.value, payment.id,
                    project_id, amount, payment.currency)
        return Result.success(payment, "Payment created")

    def mark_pending(self, payment_id: str, external_reference: str) -> Result[Payment]:
        """Record that the gateway accepted the charge."""
        with self.store.transaction():
            payments = self._load_payments()
            payment = next((p for p in payments if p.id == payment_id), None)

            if not payment:
                return Result.failure(ErrorKind.NOT_FOUND, f"Payment not found: {payment_id}")

            if payment.status == PaymentStatus.PENDING:
                return Result.success(payment, "Payment already pending")

            if payment.status != PaymentStatus.CREATED:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot mark payment pending in status: {payment.status.value}",
                )

            payment.status = PaymentStatus.PENDING
            payment.external_reference = external_reference
            self._save_payments(payments)
            self._record(payment, EventKind.PENDING, external_reference=external_reference)

        return Result.success(payment, "Payment is pending")

    def confirm_payment(self, payment_id: str, external_reference: str) -> Result[Payment]:
        """
        Mark a payment completed on gateway confirmation.

        Safe under at-least-once delivery: confirming a completed payment
        returns it unchanged without a second credit.
        """
        with self.store.transaction():
            payments = self._load_payments()
            payment = next((p for p in payments if p.id == payment_id), None)

            if not payment:
                return Result.failure(ErrorKind.NOT_FOUND, f"Payment not found: {payment_id}")

            if payment.status == PaymentStatus.COMPLETED:
                logger.debug("Duplicate confirmation for %s ignored", payment_id)
                return Result.success(payment, "Payment already completed")

            if payment.status.is_final:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Payment already finalized: {payment.status.value}",
                )

            clash = next(
                (p for p in payments if p.external_reference == external_reference and p.id != payment_id),
                None,
            )
            if clash:
                return Result.failure(
                    ErrorKind.INVALID_INPUT,
                    f"External reference {external_reference} already applied to {clash.id}",
                )

            payment.status = PaymentStatus.COMPLETED
            payment.external_reference = external_reference
            payment.confirmed_at = self.clock()
            self._save_payments(payments)
            self._record(payment, EventKind.CONFIRMED, external_reference=external_reference)

        logger.info("Confirmed payment %s (%s)", payment_id, external_reference)
        return Result.success(payment, "Payment completed")

    def fail_payment(self, payment_id: str, reason: str) -> Result[Payment]:
        """Mark a payment as failed on gateway instruction."""
        with self.store.transaction():
            payments = self._load_payments()
            payment = next((p for p in payments if p.id == payment_id), None)

            if not payment:
                return Result.failure(ErrorKind.NOT_FOUND, f"Payment not found: {payment_id}")

            if payment.status == PaymentStatus.FAILED:
                return Result.success(payment, "Payment already failed")

            if payment.status not in (PaymentStatus.CREATED, PaymentStatus.PENDING):
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot fail payment in status: {payment.status.value}",
                )

            payment.status = PaymentStatus.FAILED
            payment.failure_reason = reason
            self._save_payments(payments)
            self._record(payment, EventKind.FAILED, reason=reason)

        logger.warning("Payment %s failed: %s", payment_id, reason)
        return Result.success(payment, "Payment marked as failed")

    def refund_payment(self, payment_id: str, reason: str = "") -> Result[Payment]:
        """Record a refund the gateway has performed. Released escrow cannot be refunded."""
        with self.store.transaction():
            payments = self._load_payments()
            payment = next((p for p in payments if p.id == payment_id), None)

            if not payment:
                return Result.failure(ErrorKind.NOT_FOUND, f"Payment not found: {payment_id}")

            if payment.status == PaymentStatus.REFUNDED:
                return Result.success(payment, "Payment already refunded")

            if payment.status != PaymentStatus.COMPLETED:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot refund payment in status: {payment.status.value}",
                )

            if payment.is_released:
                return Result.failure(
                    ErrorKind.ALREADY_RELEASED,
                    f"Escrow for {payment_id} was released on {payment.escrow_released_at.isoformat()}",
                )

            payment.status = PaymentStatus.REFUNDED
            payment.refunded_at = self.clock()
            self._save_payments(payments)
            self._record(payment, EventKind.REFUNDED, reason=reason)

        logger.info("Refunded payment %s: %s", payment_id, reason)
        return Result.success(payment, "Payment refunded")

    def release_escrow(
        self,
        project_id: str,
        reason: str,
        payment_id: Optional[str] = None,
    ) -> Result[Payment]:
        """
        Release the escrowed project payment to the freelancer.

        The check of escrow_released_at and the stamp happen in one
        transaction, so only one caller can release a given escrow.
        """
        with self.store.transaction():
            payments = self._load_payments()
            candidates = [
                p for p in payments
                if p.project_id == project_id
                and p.type == PaymentType.PROJECT_PAYMENT
                and p.status == PaymentStatus.COMPLETED
            ]
            if payment_id:
                candidates = [p for p in candidates if p.id == payment_id]

            if not candidates:
                return Result.failure(
                    ErrorKind.NO_ESCROW_FUNDS,
                    f"No completed project payment held for project {project_id}",
                )

            unreleased = [p for p in candidates if not p.is_released]
            if not unreleased:
                return Result.failure(
                    ErrorKind.ALREADY_RELEASED,
                    f"Escrow for project {project_id} already released",
                )

            if len(unreleased) > 1:
                return Result.failure(
                    ErrorKind.INVALID_TRANSITION,
                    f"Project {project_id} holds {len(unreleased)} escrow payments; specify which to release",
                )

            payment = unreleased[0]
            payment.escrow_released_at = self.clock()
            payment.release_reason = reason
            payment.platform_fee = payment.amount * self.config.platform_fee_percent // 100
            self._save_payments(payments)

            self._record(payment, EventKind.ESCROW_RELEASED, amount=payment.net_amount,
                         reason=reason, payee_id=payment.payee_id)
            self._record(payment, EventKind.FEE_COLLECTED, amount=payment.platform_fee,
                         percent=self.config.platform_fee_percent)

        logger.info("Released escrow %s for project %s: %d to %s, fee %d",
                    payment.id, project_id, payment.net_amount, payment.payee_id, payment.platform_fee)
        return Result.success(payment, "Escrow released")

    # === Aggregates ===

    def _completed(self, payment_type: Optional[PaymentType] = None) -> list[Payment]:
        return [
            p for p in self._load_payments()
            if p.status == PaymentStatus.COMPLETED
            and (payment_type is None or p.type == payment_type)
        ]

    def total_paid_by(self, client_id: str) -> int:
        """Completed project payments made by a client."""
        return sum(p.amount for p in self._completed(PaymentType.PROJECT_PAYMENT) if p.payer_id == client_id)

    def total_spent_by(self, client_id: str) -> int:
        """Completed payments of every type made by a client."""
        return sum(p.amount for p in self._completed() if p.payer_id == client_id)

    def total_earned_by(self, freelancer_id: str) -> int:
        """Completed project payments addressed to a freelancer, gross."""
        return sum(p.amount for p in self._completed(PaymentType.PROJECT_PAYMENT) if p.payee_id == freelancer_id)

    def available_balance(self, freelancer_id: str) -> int:
        """Released escrow paid out to a freelancer, net of fees."""
        return sum(
            p.net_amount for p in self._completed(PaymentType.PROJECT_PAYMENT)
            if p.payee_id == freelancer_id and p.is_released
        )

    def pending_earnings(self, freelancer_id: str) -> int:
        """Escrow still held for a freelancer."""
        return sum(
            p.amount for p in self._completed(PaymentType.PROJECT_PAYMENT)
            if p.payee_id == freelancer_id and not p.is_released
        )

    def pending_count(self, client_id: str) -> int:
        """Payments by a client still waiting on the gateway."""
        return sum(
            1 for p in self._load_payments()
            if p.payer_id == client_id
            and p.status in (PaymentStatus.CREATED, PaymentStatus.PENDING)
        )

    def earnings_between(self, freelancer_id: str, start: datetime, end: datetime) -> int:
        """Net escrow released to a freelancer within [start, end)."""
        return sum(
            p.net_amount for p in self._completed(PaymentType.PROJECT_PAYMENT)
            if p.payee_id == freelancer_id
            and p.is_released
            and start <= p.escrow_released_at < end
        )

    def get_payment_statistics(self) -> dict:
        """Get platform payment statistics."""
        payments = self._load_payments()

        stats = {
            "total_payments": len(payments),
            "by_status": {},
            "by_type": {},
            "escrow_held": 0,
            "escrow_released": 0,
            "fees_collected": 0,
        }

        for payment in payments:
            status = payment.status.value
            stats["by_status"][status] = stats["by_status"].get(status, 0) + 1

            payment_type = payment.type.value
            stats["by_type"][payment_type] = stats["by_type"].get(payment_type, 0) + 1

            if payment.holds_escrow:
                stats["escrow_held"] += payment.amount
            elif payment.status == PaymentStatus.COMPLETED and payment.is_released:
                stats["escrow_released"] += payment.net_amount
                stats["fees_collected"] += payment.platform_fee

        return stats
