"""Shared fixtures for the marketplace tests."""

from datetime import datetime, timedelta

import pytest

from escrow_marketplace.api.client import MarketplaceClient
from escrow_marketplace.config import PlatformConfig
from escrow_marketplace.gateway import SandboxGateway
from escrow_marketplace.models.payment import PaymentType
from escrow_marketplace.storage import JsonStore
from escrow_marketplace.workflows import (
    ApplicationTracker,
    PaymentLedger,
    ProjectLifecycle,
    StatsAggregator,
)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 9, 0, 0))


@pytest.fixture
def config(tmp_path):
    return PlatformConfig(data_dir=tmp_path)


@pytest.fixture
def store(tmp_path):
    return JsonStore(tmp_path)


@pytest.fixture
def ledger(store, config, clock):
    return PaymentLedger(store, config, clock=clock)


@pytest.fixture
def lifecycle(store, ledger, config, clock):
    return ProjectLifecycle(store, ledger, config, clock=clock)


@pytest.fixture
def tracker(store, lifecycle, ledger, clock):
    return ApplicationTracker(store, lifecycle, ledger, clock=clock)


@pytest.fixture
def stats(lifecycle, tracker, ledger, clock):
    return StatsAggregator(lifecycle, tracker, ledger, clock=clock)


@pytest.fixture
def gateway():
    return SandboxGateway()


@pytest.fixture
def client(config, gateway, clock):
    return MarketplaceClient(config=config, gateway=gateway, clock=clock)


@pytest.fixture
def project(lifecycle):
    """An active project owned by client-1 with a 10,000-20,000 budget."""
    return lifecycle.post("client-1", {
        "title": "Build a landing page",
        "description": "Responsive marketing site",
        "skills": ["react", "css"],
        "budget": {"min": 10000, "max": 20000},
        "duration": "2 weeks",
        "category": "web",
    }).unwrap()


@pytest.fixture
def deposit(ledger):
    """Create and confirm the escrow deposit for an accepted application."""
    def _deposit(project, application, amount=None, reference=None):
        payment = ledger.create_payment(
            payer_id=project.client_id,
            payee_id=application.freelancer_id,
            project_id=project.id,
            application_id=application.id,
            payment_type=PaymentType.PROJECT_PAYMENT,
            amount=application.bid_amount if amount is None else amount,
        ).unwrap()
        return ledger.confirm_payment(payment.id, reference or f"ext-{payment.id}").unwrap()

    return _deposit


@pytest.fixture
def hire(tracker, deposit):
    """Submit, accept, pay and hire a freelancer on a project."""
    def _hire(project, freelancer_id, bid=15000):
        application = tracker.submit(project.id, freelancer_id, "Proposal", bid, "2 weeks").unwrap()
        tracker.accept(application.id, project.client_id).unwrap()
        payment = deposit(project, application)
        return tracker.mark_hired(application.id, payment.id).unwrap(), payment

    return _hire
