"""Tests for the payment ledger."""
import pytest

from escrow_marketplace.models.payment import EventKind, PaymentStatus, PaymentType
from escrow_marketplace.results import ErrorKind
from escrow_marketplace.workflows.payment_ledger import PaymentLedger, validate_amount


def _create(ledger, amount=15000, payment_type=PaymentType.PROJECT_PAYMENT, project_id="PROJ-1", **kwargs):
    return ledger.create_payment(
        payer_id=kwargs.pop("payer_id", "client-1"),
        payee_id=kwargs.pop("payee_id", "freelancer-1"),
        project_id=project_id,
        application_id=kwargs.pop("application_id", "APP-1"),
        payment_type=payment_type,
        amount=amount,
        **kwargs,
    )


class TestValidateAmount:
    def test_positive_integer_is_valid(self):
        assert validate_amount(1) is None

    @pytest.mark.parametrize("amount", [0, -5, 10.5, "100", True, None])
    def test_rejected_amounts(self, amount):
        assert validate_amount(amount) is not None


class TestCreatePayment:
    def test_created_with_config_currency(self, ledger):
        payment = _create(ledger).unwrap()
        assert payment.status == PaymentStatus.CREATED
        assert payment.currency == "INR"
        assert payment.id.startswith("PAY-")
        assert ledger.get_payment(payment.id).amount == 15000

    def test_zero_amount_is_invalid_input(self, ledger):
        result = _create(ledger, amount=0)
        assert not result.ok
        assert result.error == ErrorKind.INVALID_INPUT
        assert ledger.list_payments() == []

    def test_project_required_except_for_profile_boost(self, ledger):
        assert _create(ledger, project_id="").error == ErrorKind.INVALID_INPUT
        boost = _create(ledger, project_id="", payment_type=PaymentType.PROFILE_BOOST, application_id=None)
        assert boost.ok

    def test_metadata_must_be_flat(self, ledger):
        result = _create(ledger, metadata={"order": {"nested": True}})
        assert result.error == ErrorKind.INVALID_INPUT
        assert "metadata" in result.message

    def test_metadata_kept(self, ledger):
        payment = _create(ledger, metadata={"invoice": "INV-7", "attempt": 1}).unwrap()
        assert ledger.get_payment(payment.id).metadata == {"invoice": "INV-7", "attempt": 1}

    def test_created_event_recorded(self, ledger):
        payment = _create(ledger).unwrap()
        events = ledger.replay(payment.id)
        assert [e.kind for e in events] == [EventKind.CREATED]


class TestConfirmPayment:
    def test_confirm_completes(self, ledger, clock):
        payment = _create(ledger).unwrap()
        ledger.mark_pending(payment.id, "ext-1").unwrap()

        confirmed = ledger.confirm_payment(payment.id, "ext-1").unwrap()
        assert confirmed.status == PaymentStatus.COMPLETED
        assert confirmed.confirmed_at == clock.now

    def test_confirm_is_idempotent(self, ledger):
        payment = _create(ledger).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()

        again = ledger.confirm_payment(payment.id, "ext-1")
        assert again.ok
        assert again.value.status == PaymentStatus.COMPLETED

        confirmations = [e for e in ledger.replay(payment.id) if e.kind == EventKind.CONFIRMED]
        assert len(confirmations) == 1
        assert ledger.total_paid_by("client-1") == 15000

    def test_confirm_unknown_payment(self, ledger):
        assert ledger.confirm_payment("PAY-MISSING", "ext").error == ErrorKind.NOT_FOUND

    def test_confirm_after_failure_refused(self, ledger):
        payment = _create(ledger).unwrap()
        ledger.fail_payment(payment.id, "card declined").unwrap()
        assert ledger.confirm_payment(payment.id, "ext-1").error == ErrorKind.INVALID_TRANSITION

    def test_reference_cannot_confirm_two_payments(self, ledger):
        first = _create(ledger).unwrap()
        second = _create(ledger).unwrap()
        ledger.confirm_payment(first.id, "ext-shared").unwrap()

        result = ledger.confirm_payment(second.id, "ext-shared")
        assert result.error == ErrorKind.INVALID_INPUT
        assert ledger.get_payment(second.id).status == PaymentStatus.CREATED


class TestFailAndRefund:
    def test_fail_pending_payment(self, ledger):
        payment = _create(ledger).unwrap()
        ledger.mark_pending(payment.id, "ext-1").unwrap()
        failed = ledger.fail_payment(payment.id, "insufficient funds").unwrap()
        assert failed.status == PaymentStatus.FAILED
        assert failed.failure_reason == "insufficient funds"

    def test_cannot_fail_completed_payment(self, ledger):
        payment = _create(ledger).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()
        assert ledger.fail_payment(payment.id, "late").error == ErrorKind.INVALID_TRANSITION

    def test_refund_completed_payment(self, ledger):
        payment = _create(ledger).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()

        refunded = ledger.refund_payment(payment.id, "client cancelled").unwrap()
        assert refunded.status == PaymentStatus.REFUNDED
        assert ledger.total_paid_by("client-1") == 0
        assert ledger.pending_earnings("freelancer-1") == 0

    def test_refund_of_released_escrow_refused(self, ledger):
        payment = _create(ledger).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()
        ledger.release_escrow("PROJ-1", "done").unwrap()

        assert ledger.refund_payment(payment.id).error == ErrorKind.ALREADY_RELEASED


class TestReleaseEscrow:
    def test_release_without_confirmed_payment(self, ledger):
        _create(ledger).unwrap()
        result = ledger.release_escrow("PROJ-1", "done")
        assert result.error == ErrorKind.NO_ESCROW_FUNDS

    def test_release_stamps_and_takes_fee(self, ledger, clock):
        payment = _create(ledger, amount=15005).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()

        released = ledger.release_escrow("PROJ-1", "work accepted").unwrap()
        assert released.escrow_released_at == clock.now
        assert released.release_reason == "work accepted"
        assert released.platform_fee == 1500
        assert released.net_amount == 13505

        kinds = [e.kind for e in ledger.replay(payment.id)]
        assert kinds == [
            EventKind.CREATED,
            EventKind.CONFIRMED,
            EventKind.ESCROW_RELEASED,
            EventKind.FEE_COLLECTED,
        ]

    def test_second_release_refused(self, ledger):
        payment = _create(ledger).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()
        first = ledger.release_escrow("PROJ-1", "done").unwrap()

        second = ledger.release_escrow("PROJ-1", "again")
        assert second.error == ErrorKind.ALREADY_RELEASED
        assert ledger.get_payment(payment.id).escrow_released_at == first.escrow_released_at

    def test_ambiguous_release_refused(self, ledger):
        for reference in ("ext-1", "ext-2"):
            payment = _create(ledger).unwrap()
            ledger.confirm_payment(payment.id, reference).unwrap()

        assert ledger.release_escrow("PROJ-1", "done").error == ErrorKind.INVALID_TRANSITION

    def test_release_named_payment(self, ledger):
        first = _create(ledger).unwrap()
        second = _create(ledger).unwrap()
        ledger.confirm_payment(first.id, "ext-1").unwrap()
        ledger.confirm_payment(second.id, "ext-2").unwrap()

        ledger.release_escrow("PROJ-1", "done", payment_id=second.id).unwrap()
        assert not ledger.get_payment(first.id).is_released
        assert ledger.get_payment(second.id).is_released

    def test_custom_fee_percent(self, store, config, clock):
        config.platform_fee_percent = 0
        ledger = PaymentLedger(store, config, clock=clock)
        payment = _create(ledger).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()
        assert ledger.release_escrow("PROJ-1", "done").unwrap().platform_fee == 0


class TestAggregates:
    def test_balances_follow_escrow(self, ledger):
        payment = _create(ledger, amount=20000).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()

        assert ledger.total_earned_by("freelancer-1") == 20000
        assert ledger.pending_earnings("freelancer-1") == 20000
        assert ledger.available_balance("freelancer-1") == 0

        ledger.release_escrow("PROJ-1", "done").unwrap()

        assert ledger.total_earned_by("freelancer-1") == 20000
        assert ledger.pending_earnings("freelancer-1") == 0
        assert ledger.available_balance("freelancer-1") == 18000

    def test_spent_includes_every_type(self, ledger):
        project_payment = _create(ledger, amount=15000).unwrap()
        listing = _create(ledger, amount=999, payment_type=PaymentType.FEATURED_LISTING,
                          payee_id=None, application_id=None).unwrap()
        for payment in (project_payment, listing):
            ledger.confirm_payment(payment.id, f"ext-{payment.id}").unwrap()

        assert ledger.total_paid_by("client-1") == 15000
        assert ledger.total_spent_by("client-1") == 15999

    def test_pending_count(self, ledger):
        created = _create(ledger).unwrap()
        pending = _create(ledger).unwrap()
        ledger.mark_pending(pending.id, "ext-2").unwrap()
        assert ledger.pending_count("client-1") == 2

        ledger.fail_payment(created.id, "abandoned").unwrap()
        assert ledger.pending_count("client-1") == 1

    def test_statistics(self, ledger):
        payment = _create(ledger, amount=10000).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()
        held = ledger.get_payment_statistics()
        assert held["escrow_held"] == 10000
        assert held["by_status"] == {"completed": 1}

        ledger.release_escrow("PROJ-1", "done").unwrap()
        stats = ledger.get_payment_statistics()
        assert stats["escrow_held"] == 0
        assert stats["escrow_released"] == 9000
        assert stats["fees_collected"] == 1000

    def test_earnings_between(self, ledger, clock):
        payment = _create(ledger, amount=10000).unwrap()
        ledger.confirm_payment(payment.id, "ext-1").unwrap()
        ledger.release_escrow("PROJ-1", "done").unwrap()

        start = clock.now.replace(day=1)
        assert ledger.earnings_between("freelancer-1", start, clock.advance(days=1)) == 9000
        assert ledger.earnings_between("freelancer-1", clock.now, clock.advance(days=1)) == 0
