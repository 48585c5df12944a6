"""Tests for dashboard statistics."""
from escrow_marketplace.models.payment import PaymentType


class TestClientStats:
    def test_empty_client(self, stats):
        assert stats.client_stats("nobody") == {
            "activeProjects": 0,
            "totalProjects": 0,
            "completedProjects": 0,
            "totalPaid": 0,
            "totalSpent": 0,
            "pendingPayments": 0,
            "hiredFreelancers": 0,
            "avgResponseTime": "0h",
        }

    def test_response_time_rounds_half_up(self, stats, tracker, project, clock):
        clock.advance(hours=2)
        tracker.submit(project.id, "freelancer-1", "x", 15000, "1 week").unwrap()
        clock.advance(hours=1)
        tracker.submit(project.id, "freelancer-2", "y", 15000, "1 week").unwrap()

        # (2h + 3h) / 2 = 2.5h
        assert stats.client_stats("client-1")["avgResponseTime"] == "3h"

    def test_counts_after_hire_and_release(self, stats, lifecycle, ledger, project, hire):
        hire(project, "freelancer-1", bid=15000)
        listing = ledger.create_payment("client-1", None, project.id, None,
                                        PaymentType.FEATURED_LISTING, 500).unwrap()
        ledger.mark_pending(listing.id, "ext-listing").unwrap()

        result = stats.client_stats("client-1")
        assert result["totalProjects"] == 1
        assert result["activeProjects"] == 0
        assert result["hiredFreelancers"] == 1
        assert result["totalPaid"] == 15000
        assert result["totalSpent"] == 15000
        assert result["pendingPayments"] == 1

        lifecycle.release_payment(project.id, "client-1").unwrap()
        lifecycle.complete(project.id, "client-1").unwrap()
        assert stats.client_stats("client-1")["completedProjects"] == 1


class TestFreelancerStats:
    def test_acceptance_rate_and_proposals(self, stats, tracker, lifecycle, project, hire):
        other = lifecycle.post("client-2", {"title": "Other", "budget": {"min": 100, "max": 200}}).unwrap()
        hire(project, "freelancer-1")
        tracker.submit(other.id, "freelancer-1", "x", 150, "1 day").unwrap()

        result = stats.freelancer_stats("freelancer-1")
        assert result["totalApplications"] == 2
        assert result["pendingProposals"] == 1
        assert result["acceptanceRate"] == 0.5
        assert result["activeProjects"] == 1
        assert result["completedProjects"] == 0

    def test_no_applications(self, stats):
        result = stats.freelancer_stats("freelancer-9")
        assert result["acceptanceRate"] == 0.0
        assert result["totalEarnings"] == 0

    def test_dashboard_keys(self, stats):
        # No review records exist, so ratings are not reported
        assert set(stats.freelancer_stats("freelancer-9")) == {
            "totalEarnings",
            "availableBalance",
            "pendingEarnings",
            "activeProjects",
            "completedProjects",
            "totalApplications",
            "pendingProposals",
            "acceptanceRate",
            "profileViews",
            "thisMonthEarnings",
            "lastMonthEarnings",
        }

    def test_earnings_by_month(self, stats, lifecycle, tracker, project, hire, clock):
        hire(project, "freelancer-1", bid=20000)
        tracker.record_profile_view("freelancer-1")

        held = stats.freelancer_stats("freelancer-1")
        assert held["totalEarnings"] == 20000
        assert held["pendingEarnings"] == 20000
        assert held["availableBalance"] == 0
        assert held["thisMonthEarnings"] == 0
        assert held["profileViews"] == 1

        lifecycle.release_payment(project.id, "client-1").unwrap()
        released = stats.freelancer_stats("freelancer-1")
        assert released["availableBalance"] == 18000
        assert released["pendingEarnings"] == 0
        assert released["thisMonthEarnings"] == 18000
        assert released["lastMonthEarnings"] == 0

        clock.advance(days=31)
        next_month = stats.freelancer_stats("freelancer-1")
        assert next_month["thisMonthEarnings"] == 0
        assert next_month["lastMonthEarnings"] == 18000


class TestPlatformStats:
    def test_totals(self, stats, tracker, project):
        tracker.submit(project.id, "freelancer-1", "x", 15000, "1 week").unwrap()
        result = stats.platform_stats()
        assert result["total_projects"] == 1
        assert result["projects_by_status"] == {"active": 1}
        assert result["applications_by_status"] == {"pending": 1}
        assert result["payments"]["total_payments"] == 0
