#!/usr/bin/env python3
"""
Command-line interface for the escrow marketplace.

Operators and local developers can:
- Post and browse projects
- Apply, accept and withdraw applications
- Start payments, replay gateway callbacks and release escrow
- Inspect dashboards and platform totals
"""

import argparse
import json
import logging
import os
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table

from escrow_marketplace.api.client import MarketplaceClient
from escrow_marketplace.config import configure_logging, load_config

console = Console()
logger = logging.getLogger(__name__)


def get_client() -> MarketplaceClient:
    """Build a client from MARKET_CONFIG and the MARKET_* environment."""
    config = load_config(os.environ.get("MARKET_CONFIG"))
    configure_logging(config.log_level)
    return MarketplaceClient(config=config)


def format_amount(amount: Optional[int], currency: str = "INR") -> str:
    """Render minor units, e.g. 150000 -> 'INR 1,500.00'."""
    if amount is None:
        return "-"
    return f"{currency} {amount / 100:,.2f}"


def unwrap(response: dict):
    """Return the response data or exit with the error."""
    if not response["success"]:
        console.print(f"[red]Error ({response.get('error')}):[/red] {response.get('message')}")
        sys.exit(1)
    return response["data"]


def show_record(title: str, record: dict) -> None:
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in record.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value)
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


# === Project Commands ===

def cmd_projects_post(args):
    """Post a new project."""
    client = get_client()
    details = {
        "title": args.title,
        "description": args.description or "",
        "skills": [s.strip() for s in args.skills.split(",")] if args.skills else [],
        "budget": {"min": args.budget_min, "max": args.budget_max},
        "duration": args.duration or "",
        "category": args.category or "",
    }
    project = unwrap(client.post_project(args.client, details, draft=args.draft))
    console.print(f"[green]Project posted:[/green] {project['id']}")


def cmd_projects_list(args):
    """List projects."""
    client = get_client()
    filters = {
        "clientId": args.client,
        "status": args.status,
        "category": args.category,
        "search": args.search,
        "available": args.available,
    }
    projects = unwrap(client.list_projects(filters))

    if not projects:
        console.print("No projects found.")
        return

    table = Table(title=f"Projects ({len(projects)})")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Payment")
    table.add_column("Budget", justify="right")
    table.add_column("Proposals", justify="right")
    table.add_column("Featured")

    for p in projects:
        budget = p["budget"]
        table.add_row(
            p["id"],
            p["title"][:40],
            p["status"],
            p["payment_status"],
            f"{format_amount(budget['min'], budget['currency'])} - {format_amount(budget['max'], budget['currency'])}",
            str(p["proposal_count"]),
            "yes" if p["featured"] else "",
        )
    console.print(table)


def cmd_projects_show(args):
    """Show project details."""
    client = get_client()
    show_record("Project", unwrap(client.get_project(args.project_id)))


def cmd_projects_complete(args):
    client = get_client()
    project = unwrap(client.complete_project(args.project_id, args.client))
    console.print(f"[green]Project completed:[/green] {project['id']}")


def cmd_projects_cancel(args):
    client = get_client()
    project = unwrap(client.cancel_project(args.project_id, args.client, args.reason or ""))
    console.print(f"Project cancelled: {project['id']}")


# === Application Commands ===

def cmd_applications_list(args):
    """List applications for a project or a freelancer."""
    client = get_client()
    applications = unwrap(client.list_applications({
        "projectId": args.project,
        "freelancerId": args.freelancer,
        "status": args.status,
    }))

    if not applications:
        console.print("No applications found.")
        return

    table = Table(title=f"Applications ({len(applications)})")
    table.add_column("ID", style="cyan")
    table.add_column("Project")
    table.add_column("Freelancer")
    table.add_column("Bid", justify="right")
    table.add_column("Status")
    table.add_column("Paid")

    for a in applications:
        table.add_row(
            a["id"],
            a["project_id"],
            a["freelancer_id"],
            format_amount(a["bid_amount"]),
            a["status"],
            "yes" if a["paid"] else "",
        )
    console.print(table)


def cmd_applications_submit(args):
    client = get_client()
    application = unwrap(client.submit_application(
        project_id=args.project,
        freelancer_id=args.freelancer,
        proposal=args.proposal,
        bid_amount=args.bid,
        estimated_duration=args.duration or "",
    ))
    console.print(f"[green]Application submitted:[/green] {application['id']}")


def cmd_applications_accept(args):
    client = get_client()
    application = unwrap(client.accept_application(args.application_id, args.client))
    console.print(f"Application accepted: {application['id']}")
    console.print(f"Next: start a project payment of {format_amount(application['bid_amount'])}")


def cmd_applications_reject(args):
    client = get_client()
    application = unwrap(client.reject_application(args.application_id, args.client))
    console.print(f"Application rejected: {application['id']}")


def cmd_applications_withdraw(args):
    client = get_client()
    application = unwrap(client.withdraw_application(args.application_id, args.freelancer))
    console.print(f"Application withdrawn: {application['id']}")


# === Payment Commands ===

def cmd_payments_start(args):
    """Record a payment intent and charge the sandbox gateway."""
    client = get_client()
    payment = unwrap(client.initiate_payment(args.kind, args.amount, {
        "payerId": args.payer,
        "projectId": args.project,
        "applicationId": args.application,
        "payeeId": args.payee,
    }))
    console.print(f"Payment {payment['id']} is {payment['status']}")
    console.print(f"Gateway reference: {payment['external_reference']}")


def cmd_payments_callback(args):
    """Apply a gateway outcome to a payment."""
    client = get_client()
    data = unwrap(client.handle_gateway_callback(args.payment_id, args.reference, args.status))
    if "payment" in data:
        data = data["payment"]
    console.print(f"Payment {data['id']} is {data['status']}")


def cmd_payments_release(args):
    """Release a project's escrow to the hired freelancer."""
    client = get_client()
    project = unwrap(client.release_escrow(
        client_id=args.client,
        project_id=args.project,
        reason=args.reason or "",
    ))
    console.print(f"[green]Escrow released for {project['id']}[/green]")


def cmd_payments_history(args):
    client = get_client()
    events = unwrap(client.payment_history(args.payment_id))

    table = Table(title=f"Ledger events for {args.payment_id}")
    table.add_column("Recorded")
    table.add_column("Event")
    table.add_column("Amount", justify="right")
    table.add_column("Detail")
    for e in events:
        table.add_row(e["recorded_at"], e["kind"], format_amount(e["amount"]), json.dumps(e["detail"]))
    console.print(table)


# === Stats Commands ===

def cmd_stats_client(args):
    client = get_client()
    show_record(f"Client dashboard: {args.client_id}", unwrap(client.get_client_stats(args.client_id)))


def cmd_stats_freelancer(args):
    client = get_client()
    show_record(
        f"Freelancer dashboard: {args.freelancer_id}",
        unwrap(client.get_freelancer_stats(args.freelancer_id)),
    )


def cmd_admin_stats(args):
    """Show platform statistics."""
    client = get_client()
    stats = unwrap(client.get_platform_stats())

    console.print("\n[bold]=== Platform Statistics ===[/bold]\n")

    console.print(f"Projects: {stats['total_projects']}")
    for status, count in stats["projects_by_status"].items():
        console.print(f"  {status}: {count}")

    console.print(f"\nApplications: {stats['total_applications']}")
    for status, count in stats["applications_by_status"].items():
        console.print(f"  {status}: {count}")

    payments = stats["payments"]
    console.print(f"\nPayments: {payments['total_payments']}")
    console.print(f"Held in escrow: {format_amount(payments['escrow_held'])}")
    console.print(f"Released: {format_amount(payments['escrow_released'])}")
    console.print(f"Fees collected: {format_amount(payments['fees_collected'])}")


def cmd_admin_config(args):
    """Print the effective configuration."""
    config = load_config(os.environ.get("MARKET_CONFIG"))
    show_record("Configuration", config.to_dict())


# === Main CLI ===

def main():
    parser = argparse.ArgumentParser(
        description="Escrow Marketplace CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Post:         escrow-market projects post --client C1 --title "Logo" --budget-min 5000 --budget-max 9000
  Browse:       escrow-market projects list --available --search logo
  Apply:        escrow-market applications submit --project PROJ-ABC --freelancer F1 --bid 7000 --proposal "..."
  Pay:          escrow-market payments start --kind project_payment --amount 7000 --payer C1 \\
                    --project PROJ-ABC --application APP-XYZ
  Confirm:      escrow-market payments callback PAY-123 --reference sbx_abc --status completed
  Release:      escrow-market payments release --project PROJ-ABC --client C1
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Projects
    projects_parser = subparsers.add_parser("projects", help="Project management")
    projects_sub = projects_parser.add_subparsers(dest="projects_command")

    projects_post = projects_sub.add_parser("post", help="Post a project")
    projects_post.add_argument("--client", required=True, help="Client ID")
    projects_post.add_argument("--title", required=True, help="Project title")
    projects_post.add_argument("--description", help="Project description")
    projects_post.add_argument("--skills", help="Comma-separated skills")
    projects_post.add_argument("--budget-min", type=int, required=True, help="Minimum budget (minor units)")
    projects_post.add_argument("--budget-max", type=int, required=True, help="Maximum budget (minor units)")
    projects_post.add_argument("--duration", help="Expected duration")
    projects_post.add_argument("--category", help="Category")
    projects_post.add_argument("--draft", action="store_true", help="Keep out of listings")
    projects_post.set_defaults(func=cmd_projects_post)

    projects_list = projects_sub.add_parser("list", help="List projects")
    projects_list.add_argument("--client", help="Only this client's projects")
    projects_list.add_argument("--status", help="Filter by status")
    projects_list.add_argument("--category", help="Filter by category")
    projects_list.add_argument("--search", help="Search title, description and skills")
    projects_list.add_argument("--available", action="store_true", help="Only projects open for applications")
    projects_list.set_defaults(func=cmd_projects_list)

    projects_show = projects_sub.add_parser("show", help="Show project details")
    projects_show.add_argument("project_id", help="Project ID")
    projects_show.set_defaults(func=cmd_projects_show)

    projects_complete = projects_sub.add_parser("complete", help="Mark a project completed")
    projects_complete.add_argument("project_id", help="Project ID")
    projects_complete.add_argument("--client", required=True, help="Client ID")
    projects_complete.set_defaults(func=cmd_projects_complete)

    projects_cancel = projects_sub.add_parser("cancel", help="Cancel a project")
    projects_cancel.add_argument("project_id", help="Project ID")
    projects_cancel.add_argument("--client", required=True, help="Client ID")
    projects_cancel.add_argument("--reason", help="Cancellation reason")
    projects_cancel.set_defaults(func=cmd_projects_cancel)

    # Applications
    applications_parser = subparsers.add_parser("applications", help="Application management")
    applications_sub = applications_parser.add_subparsers(dest="applications_command")

    applications_list = applications_sub.add_parser("list", help="List applications")
    applications_list.add_argument("--project", help="Filter by project")
    applications_list.add_argument("--freelancer", help="Filter by freelancer")
    applications_list.add_argument("--status", help="Filter by status")
    applications_list.set_defaults(func=cmd_applications_list)

    applications_submit = applications_sub.add_parser("submit", help="Apply to a project")
    applications_submit.add_argument("--project", required=True, help="Project ID")
    applications_submit.add_argument("--freelancer", required=True, help="Freelancer ID")
    applications_submit.add_argument("--proposal", required=True, help="Proposal text")
    applications_submit.add_argument("--bid", type=int, required=True, help="Bid (minor units)")
    applications_submit.add_argument("--duration", help="Estimated duration")
    applications_submit.set_defaults(func=cmd_applications_submit)

    for name, func, actor in (
        ("accept", cmd_applications_accept, "client"),
        ("reject", cmd_applications_reject, "client"),
        ("withdraw", cmd_applications_withdraw, "freelancer"),
    ):
        decision = applications_sub.add_parser(name, help=f"{name.capitalize()} an application")
        decision.add_argument("application_id", help="Application ID")
        decision.add_argument(f"--{actor}", required=True, help=f"{actor.capitalize()} ID")
        decision.set_defaults(func=func)

    # Payments
    payments_parser = subparsers.add_parser("payments", help="Payment management")
    payments_sub = payments_parser.add_subparsers(dest="payments_command")

    payments_start = payments_sub.add_parser("start", help="Start a payment")
    payments_start.add_argument("--kind", required=True,
                                help="project_payment, featured_listing or profile_boost")
    payments_start.add_argument("--amount", type=int, required=True, help="Amount (minor units)")
    payments_start.add_argument("--payer", required=True, help="Payer ID")
    payments_start.add_argument("--project", help="Project ID")
    payments_start.add_argument("--application", help="Application ID (project payments)")
    payments_start.add_argument("--payee", help="Payee ID (profile boosts)")
    payments_start.set_defaults(func=cmd_payments_start)

    payments_callback = payments_sub.add_parser("callback", help="Apply a gateway outcome")
    payments_callback.add_argument("payment_id", help="Payment ID")
    payments_callback.add_argument("--reference", required=True, help="Gateway reference")
    payments_callback.add_argument("--status", required=True, choices=["completed", "failed", "refunded"])
    payments_callback.set_defaults(func=cmd_payments_callback)

    payments_release = payments_sub.add_parser("release", help="Release escrow")
    payments_release.add_argument("--project", required=True, help="Project ID")
    payments_release.add_argument("--client", required=True, help="Client ID")
    payments_release.add_argument("--reason", help="Release note")
    payments_release.set_defaults(func=cmd_payments_release)

    payments_history = payments_sub.add_parser("history", help="Show a payment's ledger events")
    payments_history.add_argument("payment_id", help="Payment ID")
    payments_history.set_defaults(func=cmd_payments_history)

    # Stats
    stats_parser = subparsers.add_parser("stats", help="Dashboards")
    stats_sub = stats_parser.add_subparsers(dest="stats_command")

    stats_client = stats_sub.add_parser("client", help="Client dashboard")
    stats_client.add_argument("client_id", help="Client ID")
    stats_client.set_defaults(func=cmd_stats_client)

    stats_freelancer = stats_sub.add_parser("freelancer", help="Freelancer dashboard")
    stats_freelancer.add_argument("freelancer_id", help="Freelancer ID")
    stats_freelancer.set_defaults(func=cmd_stats_freelancer)

    # Admin
    admin_parser = subparsers.add_parser("admin", help="Admin commands")
    admin_sub = admin_parser.add_subparsers(dest="admin_command")

    admin_stats = admin_sub.add_parser("stats", help="Show platform statistics")
    admin_stats.set_defaults(func=cmd_admin_stats)

    admin_config = admin_sub.add_parser("config", help="Show effective configuration")
    admin_config.set_defaults(func=cmd_admin_config)

    # Parse and execute
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
