#!/usr/bin/env python3
"""
Command-line interface for operating a Cyphire deployment.

This CLI provides tools for operators to:
- Run the API server
- Inspect and promote users, and backfill profile slugs
- List tasks and payout requests, and mark payouts as paid
- Purge expired workroom histories
- Block and unblock IP addresses
"""

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .errors import CyphireError
from .logging_setup import setup_logging
from .models import TaskStatus
from .workflows import AccountManager, PaymentProcessor, TaskManager, WorkroomManager


console = Console()


def get_settings(args) -> Settings:
    """Load settings, honouring --config and --data-dir."""
    settings = load_settings(getattr(args, "config", None))
    if getattr(args, "data_dir", None):
        settings.data_dir = Path(args.data_dir)
    return settings


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


# === Server ===

def cmd_serve(args):
    """Run the API server with Socket.IO."""
    from .api import create_app

    settings = get_settings(args)
    if args.port:
        settings.port = args.port
    setup_logging(settings.log_level, settings.log_file)

    app = create_app(settings=settings)
    console.print(f"[bold cyan]Starting Cyphire API on port {settings.port}[/bold cyan]")
    app.extensions["socketio"].run(
        app,
        host=args.host,
        port=settings.port,
        debug=settings.debug,
        allow_unsafe_werkzeug=True,
    )


# === Users ===

def cmd_users_list(args):
    settings = get_settings(args)
    users = AccountManager(settings.data_dir, settings).list_users()

    if not users:
        console.print("No users found.")
        return

    table = Table(title=f"Users ({len(users)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Plan")
    table.add_column("Admin")
    table.add_column("Blocked")
    for user in users:
        table.add_row(
            user.id,
            user.name,
            user.email,
            user.plan.value,
            "yes" if user.is_admin else "",
            "yes" if user.is_blocked else "",
        )
    console.print(table)


def cmd_users_promote(args):
    settings = get_settings(args)
    try:
        user = AccountManager(settings.data_dir, settings).promote(args.email, not args.demote)
    except CyphireError as e:
        _fail(e.message)
    state = "is now an admin" if user.is_admin else "is no longer an admin"
    console.print(f"[green]{user.email} {state}[/green]")


def cmd_users_backfill_slugs(args):
    settings = get_settings(args)
    fixed = AccountManager(settings.data_dir, settings).backfill_slugs()
    console.print(f"Backfilled {fixed} slug(s)")


# === Tasks ===

def cmd_tasks_list(args):
    settings = get_settings(args)
    status = None
    if args.status:
        try:
            status = TaskStatus(args.status)
        except ValueError:
            _fail(f"Unknown status '{args.status}'")

    tasks = TaskManager(settings.data_dir, settings).list_tasks(status=status, include_flagged=True)
    if not tasks:
        console.print("No tasks found.")
        return

    table = Table(title=f"Tasks ({len(tasks)})")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Price", justify="right")
    table.add_column("Status")
    table.add_column("Applicants", justify="right")
    table.add_column("Workroom")
    table.add_column("Flagged")
    for task in tasks[:args.limit]:
        title = task.title[:38] + ".." if len(task.title) > 40 else task.title
        table.add_row(
            task.id,
            title,
            str(task.price),
            task.status.value,
            str(len(task.applicants)),
            task.workroom_id or "",
            "yes" if task.flagged else "",
        )
    console.print(table)

    if len(tasks) > args.limit:
        console.print(f"... and {len(tasks) - args.limit} more tasks")


# === Payments ===

def cmd_payments_list(args):
    settings = get_settings(args)
    paid = {"paid": True, "unpaid": False}.get(args.filter)
    logs = PaymentProcessor(settings.data_dir, settings).list_payout_logs(paid=paid)

    if not logs:
        console.print("No payout requests found.")
        return

    table = Table(title=f"Payout requests ({len(logs)})")
    table.add_column("ID", style="cyan")
    table.add_column("Workroom")
    table.add_column("UPI")
    table.add_column("Gross", justify="right")
    table.add_column("Fee", justify="right")
    table.add_column("Net", justify="right")
    table.add_column("Paid")
    for log in logs:
        table.add_row(
            log.id,
            log.workroom_id,
            log.upi_id,
            str(log.gross_amount),
            str(log.fee),
            str(log.net_amount),
            "yes" if log.paid else "no",
        )
    console.print(table)


def cmd_payments_mark_paid(args):
    settings = get_settings(args)
    try:
        log = PaymentProcessor(settings.data_dir, settings).set_paid(args.log_id, not args.unpaid)
    except CyphireError as e:
        _fail(e.message)
    console.print(f"[green]{log.id} marked {'paid' if log.paid else 'unpaid'}[/green]")


# === Workrooms ===

def cmd_workrooms_purge(args):
    settings = get_settings(args)
    removed = WorkroomManager(settings.data_dir, settings).purge_expired()
    console.print(f"Purged {removed} expired workroom histor{'y' if removed == 1 else 'ies'}")


# === IPs ===

def cmd_ips_block(args):
    settings = get_settings(args)
    entry = AccountManager(settings.data_dir, settings).block_ip(args.ip, reason=args.reason or "")
    console.print(f"[yellow]Blocked {entry.ip}[/yellow]")


def cmd_ips_unblock(args):
    settings = get_settings(args)
    if AccountManager(settings.data_dir, settings).unblock_ip(args.ip):
        console.print(f"[green]Unblocked {args.ip}[/green]")
    else:
        console.print(f"{args.ip} was not blocked")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cyphire",
        description="Cyphire marketplace operations CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Serve:          cyphire serve --port 5000
  Promote admin:  cyphire users promote ops@example.com
  Payouts:        cyphire payments list --filter unpaid
  Mark paid:      cyphire payments mark-paid PAY-1A2B3C4D
  Purge chats:    cyphire workrooms purge-expired
        """
    )
    parser.add_argument("--config", help="YAML settings file (default: $CYPHIRE_CONFIG)")
    parser.add_argument("--data-dir", dest="data_dir", help="Data directory override")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port (default: $PORT or 5000)")
    serve_parser.set_defaults(func=cmd_serve)

    # Users
    users_parser = subparsers.add_parser("users", help="User management")
    users_sub = users_parser.add_subparsers(dest="users_command")

    users_list = users_sub.add_parser("list", help="List users")
    users_list.set_defaults(func=cmd_users_list)

    users_promote = users_sub.add_parser("promote", help="Grant admin to a user")
    users_promote.add_argument("email", help="User email")
    users_promote.add_argument("--demote", action="store_true", help="Revoke admin instead")
    users_promote.set_defaults(func=cmd_users_promote)

    users_slugs = users_sub.add_parser("backfill-slugs", help="Give every user a profile slug")
    users_slugs.set_defaults(func=cmd_users_backfill_slugs)

    # Tasks
    tasks_parser = subparsers.add_parser("tasks", help="Task inspection")
    tasks_sub = tasks_parser.add_subparsers(dest="tasks_command")

    tasks_list = tasks_sub.add_parser("list", help="List tasks")
    tasks_list.add_argument("--status", help="Filter by status (pending, in-progress, completed, ...)")
    tasks_list.add_argument("--limit", type=int, default=50, help="Rows to show")
    tasks_list.set_defaults(func=cmd_tasks_list)

    # Payments
    payments_parser = subparsers.add_parser("payments", help="Payout management")
    payments_sub = payments_parser.add_subparsers(dest="payments_command")

    payments_list = payments_sub.add_parser("list", help="List payout requests")
    payments_list.add_argument("--filter", choices=["all", "paid", "unpaid"], default="all")
    payments_list.set_defaults(func=cmd_payments_list)

    payments_paid = payments_sub.add_parser("mark-paid", help="Mark a payout request paid")
    payments_paid.add_argument("log_id", help="Payment log ID")
    payments_paid.add_argument("--unpaid", action="store_true", help="Mark unpaid instead")
    payments_paid.set_defaults(func=cmd_payments_mark_paid)

    # Workrooms
    workrooms_parser = subparsers.add_parser("workrooms", help="Workroom maintenance")
    workrooms_sub = workrooms_parser.add_subparsers(dest="workrooms_command")

    workrooms_purge = workrooms_sub.add_parser("purge-expired", help="Delete expired chat histories")
    workrooms_purge.set_defaults(func=cmd_workrooms_purge)

    # IPs
    ips_parser = subparsers.add_parser("ips", help="IP blocklist")
    ips_sub = ips_parser.add_subparsers(dest="ips_command")

    ips_block = ips_sub.add_parser("block", help="Block an IP")
    ips_block.add_argument("ip", help="IP address")
    ips_block.add_argument("--reason", help="Why the IP is blocked")
    ips_block.set_defaults(func=cmd_ips_block)

    ips_unblock = ips_sub.add_parser("unblock", help="Unblock an IP")
    ips_unblock.add_argument("ip", help="IP address")
    ips_unblock.set_defaults(func=cmd_ips_unblock)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
