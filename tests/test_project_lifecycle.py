"""Tests for project posting, escrow release, completion and promotion."""
from datetime import timedelta

import pytest

from escrow_marketplace.models.payment import PaymentType
from escrow_marketplace.models.project import PaymentState, ProjectStatus
from escrow_marketplace.results import ErrorKind


def _post(lifecycle, client_id="client-1", **overrides):
    details = {
        "title": "Data pipeline",
        "description": "ETL from CSV to Postgres",
        "skills": ["python", "sql"],
        "budget": {"min": 50000, "max": 80000},
        "category": "data",
    }
    details.update(overrides)
    return lifecycle.post(client_id, details)


class TestPost:
    def test_post_defaults(self, lifecycle, clock):
        project = _post(lifecycle).unwrap()
        assert project.status == ProjectStatus.ACTIVE
        assert project.payment_status == PaymentState.UNPAID
        assert project.proposal_count == 0
        assert project.view_count == 0
        assert project.budget.currency == "INR"
        assert project.created_at == clock.now
        assert lifecycle.get_project(project.id).title == "Data pipeline"

    def test_title_required(self, lifecycle):
        assert _post(lifecycle, title="  ").error == ErrorKind.INVALID_INPUT

    @pytest.mark.parametrize("budget", [
        {"min": 500, "max": 100},
        {"min": 0, "max": 100},
        {"min": 10.5, "max": 100},
        {},
    ])
    def test_invalid_budget(self, lifecycle, budget):
        assert _post(lifecycle, budget=budget).error == ErrorKind.INVALID_INPUT

    def test_draft_then_publish(self, lifecycle):
        draft = lifecycle.post("client-1", {"title": "Later", "budget": {"min": 1, "max": 2}}, draft=True).unwrap()
        assert draft.status == ProjectStatus.DRAFT
        assert lifecycle.publish(draft.id, "client-2").error == ErrorKind.FORBIDDEN
        assert lifecycle.publish(draft.id, "client-1").unwrap().status == ProjectStatus.ACTIVE
        assert lifecycle.publish(draft.id, "client-1").error == ErrorKind.INVALID_TRANSITION


class TestViews:
    def test_every_view_counts(self, lifecycle, project):
        lifecycle.record_view(project.id, "freelancer-1")
        lifecycle.record_view(project.id, "freelancer-1")
        lifecycle.record_view(project.id)
        assert lifecycle.get_project(project.id).view_count == 3

    def test_view_unknown_project(self, lifecycle):
        assert lifecycle.record_view("PROJ-NOPE").error == ErrorKind.NOT_FOUND


class TestRelease:
    def test_release_then_complete(self, lifecycle, ledger, project, hire):
        _, payment = hire(project, "freelancer-1")

        released = lifecycle.release_payment(project.id, "client-1", "great work").unwrap()
        assert released.payment_status == PaymentState.RELEASED
        assert released.status == ProjectStatus.IN_PROGRESS
        assert ledger.get_payment(payment.id).is_released

        completed = lifecycle.complete(project.id, "client-1").unwrap()
        assert completed.status == ProjectStatus.COMPLETED
        assert completed.completed_at is not None

    def test_release_twice(self, lifecycle, ledger, project, hire):
        _, payment = hire(project, "freelancer-1")
        lifecycle.release_payment(project.id, "client-1").unwrap()
        stamped = ledger.get_payment(payment.id).escrow_released_at

        assert lifecycle.release_payment(project.id, "client-1").error == ErrorKind.ALREADY_RELEASED
        assert ledger.get_payment(payment.id).escrow_released_at == stamped

    def test_release_by_other_client(self, lifecycle, ledger, project, hire):
        _, payment = hire(project, "freelancer-1")
        assert lifecycle.release_payment(project.id, "client-2").error == ErrorKind.FORBIDDEN
        assert not ledger.get_payment(payment.id).is_released

    def test_release_unpaid_project(self, lifecycle, project):
        result = lifecycle.release_payment(project.id, "client-1")
        assert result.error == ErrorKind.INVALID_TRANSITION
        assert lifecycle.get_project(project.id).payment_status == PaymentState.UNPAID

    def test_release_from_review(self, lifecycle, project, hire):
        hire(project, "freelancer-1")
        assert lifecycle.request_review(project.id, "freelancer-2").error == ErrorKind.FORBIDDEN
        assert lifecycle.request_review(project.id, "freelancer-1").unwrap().status == ProjectStatus.IN_REVIEW
        assert lifecycle.release_payment(project.id, "client-1").ok

    def test_complete_requires_release(self, lifecycle, project, hire):
        hire(project, "freelancer-1")
        assert lifecycle.complete(project.id, "client-1").error == ErrorKind.INVALID_TRANSITION

    def test_complete_active_project(self, lifecycle, project):
        assert lifecycle.complete(project.id, "client-1").error == ErrorKind.INVALID_TRANSITION


class TestCancel:
    def test_cancel_open_project(self, lifecycle, project):
        cancelled = lifecycle.cancel(project.id, "client-1", "changed plans").unwrap()
        assert cancelled.status == ProjectStatus.CANCELLED
        assert cancelled.cancelled_at is not None

    def test_cancel_with_held_escrow_refused(self, lifecycle, project, hire):
        hire(project, "freelancer-1")
        assert lifecycle.cancel(project.id, "client-1").error == ErrorKind.INVALID_TRANSITION

    def test_cancel_after_refund(self, lifecycle, ledger, project, hire):
        _, payment = hire(project, "freelancer-1")
        ledger.refund_payment(payment.id, "client cancelled").unwrap()
        reset = lifecycle.payment_refunded(project.id, payment.id).unwrap()
        assert reset.payment_status == PaymentState.UNPAID
        assert reset.escrow_id is None

        assert lifecycle.cancel(project.id, "client-1").unwrap().status == ProjectStatus.CANCELLED

    def test_completed_project_cannot_be_cancelled(self, lifecycle, project, hire):
        hire(project, "freelancer-1")
        lifecycle.release_payment(project.id, "client-1").unwrap()
        lifecycle.complete(project.id, "client-1").unwrap()
        assert lifecycle.cancel(project.id, "client-1").error == ErrorKind.INVALID_TRANSITION


class TestFeature:
    def _listing(self, ledger, project, confirm=True):
        payment = ledger.create_payment(
            "client-1", None, project.id, None, PaymentType.FEATURED_LISTING, 99900,
        ).unwrap()
        if confirm:
            payment = ledger.confirm_payment(payment.id, f"ext-{payment.id}").unwrap()
        return payment

    def test_feature_for_a_week(self, lifecycle, ledger, project, clock):
        payment = self._listing(ledger, project)
        featured = lifecycle.feature(project.id, payment.id).unwrap()

        assert featured.featured
        assert featured.featured_until == clock.now + timedelta(days=7)
        assert featured.is_featured(clock.now)
        assert not featured.is_featured(clock.now + timedelta(days=8))

    def test_feature_needs_confirmed_payment(self, lifecycle, ledger, project):
        payment = self._listing(ledger, project, confirm=False)
        assert lifecycle.feature(project.id, payment.id).error == ErrorKind.PAYMENT_NOT_CONFIRMED
        assert lifecycle.feature(project.id, "PAY-NOPE").error == ErrorKind.PAYMENT_NOT_CONFIRMED

    def test_feature_is_idempotent(self, lifecycle, ledger, project, clock):
        payment = self._listing(ledger, project)
        first = lifecycle.feature(project.id, payment.id).unwrap()
        clock.advance(days=2)
        again = lifecycle.feature(project.id, payment.id).unwrap()
        assert again.featured_until == first.featured_until


class TestListing:
    @pytest.fixture
    def projects(self, lifecycle, clock):
        web = _post(lifecycle, title="Shop front", category="web", skills=["react"],
                    budget={"min": 10000, "max": 20000}).unwrap()
        clock.advance(hours=1)
        data = _post(lifecycle, title="Warehouse ETL", category="data",
                     budget={"min": 50000, "max": 90000}).unwrap()
        clock.advance(hours=1)
        other = _post(lifecycle, client_id="client-2", title="Mobile app", category="mobile",
                      budget={"min": 100000, "max": 150000}).unwrap()
        return web, data, other

    def test_newest_first(self, lifecycle, projects):
        web, data, other = projects
        assert [p.id for p in lifecycle.list_projects()] == [other.id, data.id, web.id]

    def test_filters(self, lifecycle, projects):
        web, data, other = projects
        assert [p.id for p in lifecycle.list_projects(client_id="client-2")] == [other.id]
        assert [p.id for p in lifecycle.list_projects(category="data")] == [data.id]
        assert [p.id for p in lifecycle.list_projects(search="REACT")] == [web.id]
        assert [p.id for p in lifecycle.list_projects(min_budget=95000)] == [other.id]
        assert [p.id for p in lifecycle.list_projects(max_budget=15000)] == [web.id]

    def test_available_puts_featured_first(self, lifecycle, ledger, projects):
        web, data, other = projects
        lifecycle.cancel(data.id, "client-1").unwrap()

        listing = ledger.create_payment("client-1", None, web.id, None, PaymentType.FEATURED_LISTING, 500).unwrap()
        ledger.confirm_payment(listing.id, "ext-listing").unwrap()
        lifecycle.feature(web.id, listing.id).unwrap()

        assert [p.id for p in lifecycle.list_available()] == [web.id, other.id]
