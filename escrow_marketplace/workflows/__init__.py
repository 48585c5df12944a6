"""Lifecycle workflows for projects, applications, payments and dashboards."""

from .payment_ledger import PaymentLedger
from .project_lifecycle import ProjectLifecycle
from .application_tracker import ApplicationTracker
from .stats_aggregator import StatsAggregator

__all__ = [
    "PaymentLedger",
    "ProjectLifecycle",
    "ApplicationTracker",
    "StatsAggregator",
]
