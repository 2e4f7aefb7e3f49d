#!/usr/bin/env python3
"""
Command-line interface for the Pengu platform.

Admins, experts and students can drive the whole order lifecycle:
- Submit requests, issue and negotiate quotes
- Assign experts, deliver milestones and run quality control
- Request and resolve withdrawals
- Moderate reviews and inspect the ledger
"""

import argparse
import json
import sys
from functools import wraps
from typing import Optional

from rich.console import Console
from rich.table import Table

from .config import configure_logging, load_settings
from .engine import PenguPlatform
from .errors import Result
from .models import (
    Attachment,
    ExpertStatus,
    OrderStatus,
    PaymentProof,
    QuoteTerms,
    RequestStatus,
    ReviewStatus,
    TransactionType,
    User,
    UserRole,
    WithdrawalStatus,
)
from .models.common import from_iso, utcnow

console = Console()

SESSION_FILENAME = "current_session.json"


def get_platform() -> PenguPlatform:
    """Platform over the configured data directory."""
    settings = load_settings()
    configure_logging(settings.log_level, rich_output=True)
    return PenguPlatform(settings=settings)


def get_current_user(platform: PenguPlatform) -> Optional[User]:
    """Get the current logged-in user."""
    session_file = platform.data_dir / SESSION_FILENAME
    if not session_file.exists():
        return None

    with open(session_file) as f:
        session = json.load(f)

    user_id = session.get("user_id")
    if not user_id:
        return None
    return platform.accounts.get_user(user_id)


def set_current_user(platform: PenguPlatform, user_id: str) -> None:
    """Set the current logged-in user."""
    session_file = platform.data_dir / SESSION_FILENAME
    with open(session_file, "w") as f:
        json.dump({"user_id": user_id, "logged_in_at": utcnow().isoformat()}, f)


def require_login(func):
    """Decorator to require user login."""
    @wraps(func)
    def wrapper(args):
        platform = get_platform()
        user = get_current_user(platform)
        if not user:
            console.print("[red]Error:[/red] Not logged in. Run 'pengu login --email ...' first.")
            sys.exit(1)
        return func(platform, user, args)
    return wrapper


def require_admin(func):
    """Decorator to require an admin login."""
    @wraps(func)
    def wrapper(platform, user, args):
        if not user.is_admin:
            console.print("[red]Error:[/red] Admin access required.")
            sys.exit(1)
        return func(platform, user, args)
    return require_login(wrapper)


def report(result: Result) -> object:
    """Print the outcome; exit non-zero on failure."""
    if not result:
        console.print(f"[red]{result.error.value}:[/red] {result.message}")
        sys.exit(1)
    console.print(f"[green]{result.message}[/green]")
    return result.value


def parse_attachment(raw: str) -> Attachment:
    """Parse ``name,format,url`` into an attachment."""
    parts = [p.strip() for p in raw.split(",", 2)]
    if len(parts) != 3:
        raise argparse.ArgumentTypeError("Attachments are given as name,format,url")
    return Attachment(name=parts[0], format=parts[1], url=parts[2])


# === Account Commands ===

def cmd_users_create(args):
    """Register a new account and log in as it."""
    platform = get_platform()
    user = report(platform.accounts.create_user(
        args.email, args.name, UserRole(args.role), credits=args.credits
    ))
    set_current_user(platform, user.id)
    console.print(f"User ID: {user.id}\nRole: {user.role.value}")


def cmd_login(args):
    """Login with existing account."""
    platform = get_platform()
    user = platform.accounts.find_by_email(args.email)
    if not user:
        console.print(f"[red]Error:[/red] No user found with email '{args.email}'")
        sys.exit(1)
    set_current_user(platform, user.id)
    console.print(f"Logged in as {user.name} ({user.role.value})")


@require_login
def cmd_whoami(platform, user, args):
    console.print(f"{user.name} <{user.email}> [{user.role.value}] {user.id}")
    if user.role == UserRole.STUDENT:
        console.print(f"Credits: {user.credits} ({user.available_credits} available)")


@require_login
def cmd_users_list(platform, user, args):
    table = Table(title="Users")
    for column in ("ID", "Name", "Email", "Role", "Credits"):
        table.add_column(column)
    for u in platform.accounts.list_users(UserRole(args.role) if args.role else None):
        table.add_row(u.id, u.name, u.email, u.role.value, str(u.credits))
    console.print(table)


@require_login
def cmd_users_grant(platform, user, args):
    report(platform.accounts.grant_credits(args.user_id, user.id, args.credits))


# === Request & Quote Commands ===

@require_login
def cmd_requests_submit(platform, user, args):
    request = report(platform.quotes.submit_request(
        user.id,
        args.service_type,
        args.topic,
        args.details,
        deadline=from_iso(args.deadline) if args.deadline else None,
        attachments=args.attach or [],
    ))
    console.print(f"Request ID: {request.id}")


@require_login
def cmd_requests_list(platform, user, args):
    student_id = user.id if user.role == UserRole.STUDENT else None
    status = RequestStatus(args.status) if args.status else None
    table = Table(title="Requests")
    for column in ("ID", "Service", "Topic", "Deadline", "Status"):
        table.add_column(column)
    for r in platform.quotes.list_requests(student_id=student_id, status=status):
        deadline = r.deadline.strftime("%Y-%m-%d") if r.deadline else "-"
        table.add_row(r.id, r.service_type, r.topic[:40], deadline, r.status.value)
    console.print(table)


@require_login
def cmd_requests_show(platform, user, args):
    request = platform.quotes.get_request(args.request_id)
    if not request:
        console.print(f"[red]Error:[/red] Request '{args.request_id}' not found")
        sys.exit(1)
    console.print(f"[bold]{request.topic}[/bold] ({request.service_type}) {request.status.value}")
    console.print(request.details)
    quote = platform.quotes.get_active_quote(request.id)
    if quote:
        console.print(
            f"\nQuote {quote.id}: {quote.amount} {quote.currency}, {quote.timeline} days, "
            f"{quote.status.value}"
        )
        for i, title in enumerate(quote.milestones, 1):
            console.print(f"  {i}. {title}")
        for message in quote.negotiation_history:
            amount = f" [{message.related_amount}]" if message.related_amount else ""
            console.print(f"  {message.sender_role.value}: {message.message}{amount}")


@require_login
def cmd_quotes_create(platform, user, args):
    terms = QuoteTerms(
        amount=args.amount,
        timeline=args.timeline,
        milestones=args.milestone,
        revisions=args.revisions,
        scope_notes=args.scope_notes,
    )
    quote = report(platform.quotes.create_quote(args.request_id, user.id, terms))
    console.print(f"Quote ID: {quote.id} (expires {quote.expiry:%Y-%m-%d})")


@require_login
def cmd_quotes_negotiate(platform, user, args):
    terms = None
    if args.amount is not None:
        terms = QuoteTerms(
            amount=args.amount,
            timeline=args.timeline,
            milestones=args.milestone,
        )
    report(platform.quotes.negotiate_quote(
        args.quote_id, user.id, args.message, terms=terms, related_amount=args.propose
    ))


@require_login
def cmd_quotes_accept(platform, user, args):
    proof = PaymentProof(method=args.method, transaction_id=args.transaction_id)
    order = report(platform.quotes.accept_quote(args.quote_id, user.id, proof))
    console.print(f"Order ID: {order.id} ({len(order.milestones)} milestones)")


@require_admin
def cmd_quotes_expire(platform, user, args):
    report(platform.quotes.expire_stale_quotes())


# === Order Commands ===

@require_login
def cmd_orders_list(platform, user, args):
    filters = {}
    if user.role == UserRole.STUDENT:
        filters["student_id"] = user.id
    elif user.role == UserRole.EXPERT:
        filters["expert_id"] = user.id
    status = OrderStatus(args.status) if args.status else None

    table = Table(title="Orders")
    for column in ("ID", "Topic", "Amount", "Progress", "Status", "Version"):
        table.add_column(column)
    for o in platform.orders.list_orders(status=status, **filters):
        table.add_row(
            o.id, o.topic[:40], f"{o.amount} {o.currency}", f"{o.progress}%",
            o.status.value, str(o.version),
        )
    console.print(table)


@require_login
def cmd_orders_show(platform, user, args):
    order = platform.orders.get_order(args.order_id)
    if not order:
        console.print(f"[red]Error:[/red] Order '{args.order_id}' not found")
        sys.exit(1)
    console.print(f"[bold]{order.topic}[/bold] {order.status.value} ({order.progress}%)")
    table = Table(title="Milestones")
    for column in ("ID", "Title", "Due", "Status", "Revisions"):
        table.add_column(column)
    for m in order.milestones:
        due = m.due_date.strftime("%Y-%m-%d") if m.due_date else "-"
        table.add_row(m.id, m.title, due, m.status.value, str(m.revision_count))
    console.print(table)


@require_login
def cmd_orders_assign(platform, user, args):
    report(platform.orders.assign_expert(
        args.order_id, user.id, args.expert_id,
        expected_version=args.expected_version, reassign=args.reassign,
    ))


@require_login
def cmd_orders_start(platform, user, args):
    report(platform.orders.start_order(args.order_id, user.id))


@require_login
def cmd_orders_submit(platform, user, args):
    report(platform.orders.submit_milestone(args.order_id, args.milestone_id, user.id, args.file))


@require_login
def cmd_orders_review(platform, user, args):
    report(platform.orders.review_deliverable(
        args.order_id,
        args.milestone_id,
        user.id,
        approved=args.decision == "approve",
        feedback=args.feedback or "",
    ))


@require_login
def cmd_orders_dispute(platform, user, args):
    report(platform.orders.open_dispute(args.order_id, user.id, args.reason))


@require_login
def cmd_orders_resolve(platform, user, args):
    report(platform.orders.resolve_dispute(args.order_id, user.id, args.resolution or ""))


# === Withdrawal Commands ===

@require_login
def cmd_withdrawals_request(platform, user, args):
    if user.role == UserRole.EXPERT:
        if args.amount is None or not args.method_id:
            console.print("[red]Error:[/red] Experts need --amount and --method-id")
            sys.exit(1)
        result = platform.withdrawals.request_expert_withdrawal(user.id, args.amount, args.method_id)
    else:
        if args.credits is None or not args.method:
            console.print("[red]Error:[/red] Students need --credits and --method")
            sys.exit(1)
        result = platform.withdrawals.request_student_withdrawal(
            user.id, args.credits, args.method, phone_number=args.phone
        )
    withdrawal = report(result)
    console.print(f"Withdrawal ID: {withdrawal.id} ({withdrawal.amount} {platform.settings.currency})")


@require_login
def cmd_withdrawals_list(platform, user, args):
    filters = {}
    if user.role == UserRole.STUDENT:
        filters["student_id"] = user.id
    elif user.role == UserRole.EXPERT:
        expert = platform.experts.get_expert_by_user(user.id)
        filters["expert_id"] = expert.id if expert else "-"
    status = WithdrawalStatus(args.status) if args.status else None

    table = Table(title="Withdrawals")
    for column in ("ID", "Kind", "Amount", "Method", "Status", "Requested"):
        table.add_column(column)
    for w in platform.withdrawals.list_withdrawals(status=status, **filters):
        table.add_row(
            w.id, w.kind.value, str(w.amount), w.method or "-", w.status.value,
            w.created_at.strftime("%Y-%m-%d"),
        )
    console.print(table)


@require_login
def cmd_withdrawals_resolve(platform, user, args):
    report(platform.withdrawals.set_status(args.withdrawal_id, user.id, WithdrawalStatus(args.status)))


# === Review Commands ===

@require_login
def cmd_reviews_list(platform, user, args):
    if args.public:
        reviews = platform.reviews.list_public_reviews()
    else:
        status = ReviewStatus(args.status) if args.status else None
        student_id = user.id if user.role == UserRole.STUDENT else None
        reviews = platform.reviews.list_reviews(status=status, student_id=student_id)

    table = Table(title="Reviews")
    for column in ("ID", "Order", "Rating", "Status", "Text"):
        table.add_column(column)
    for r in reviews:
        rating = f"{r.rating}/5" if r.rating else "-"
        table.add_row(r.id, r.order_id, rating, r.status.value, r.text[:50])
    console.print(table)


@require_login
def cmd_reviews_submit(platform, user, args):
    report(platform.reviews.submit_review(args.review_id, user.id, args.rating, args.text or ""))


@require_login
def cmd_reviews_moderate(platform, user, args):
    report(platform.reviews.moderate_review(args.review_id, user.id, ReviewStatus(args.status)))


# === Expert Commands ===

@require_login
def cmd_experts_register(platform, user, args):
    skills = [s.strip() for s in args.skills.split(",")] if args.skills else []
    expert = report(platform.experts.register_expert(user.id, args.specialty, skills))
    console.print(f"Expert ID: {expert.id} (awaiting approval)")


@require_login
def cmd_experts_list(platform, user, args):
    table = Table(title="Available experts" if args.available else "Experts")
    if args.available:
        for column in ("Expert", "Name", "Specialty", "Rating", "Completed", "Open"):
            table.add_column(column)
        for c in platform.experts.list_available_experts():
            table.add_row(
                c.expert_id, c.name, c.specialty, f"{c.rating:.1f}",
                str(c.completed_orders), str(c.open_orders),
            )
    else:
        for column in ("Expert", "Specialty", "Status", "Online", "Rating", "Balance"):
            table.add_column(column)
        for e in platform.experts.list_experts():
            table.add_row(
                e.id, e.specialty, e.status.value, "yes" if e.online else "no",
                f"{e.rating:.1f}", str(e.balance),
            )
    console.print(table)


@require_login
def cmd_experts_status(platform, user, args):
    report(platform.experts.set_status(args.expert_id, user.id, ExpertStatus(args.status)))


@require_login
def cmd_experts_online(platform, user, args):
    expert = platform.experts.get_expert_by_user(user.id)
    if not expert:
        console.print("[red]Error:[/red] No expert profile. Run 'pengu experts register' first.")
        sys.exit(1)
    report(platform.experts.set_online(expert.id, user.id, args.state == "on"))


@require_login
def cmd_experts_add_method(platform, user, args):
    expert = platform.experts.get_expert_by_user(user.id)
    if not expert:
        console.print("[red]Error:[/red] No expert profile. Run 'pengu experts register' first.")
        sys.exit(1)
    method = report(platform.experts.add_payout_method(
        expert.id, user.id, args.type, args.account_name, args.account_number,
        bank_name=args.bank_name, branch_name=args.branch_name, is_primary=args.primary,
    ))
    console.print(f"Method ID: {method.id}")


# === Ledger & Stats ===

@require_admin
def cmd_ledger(platform, user, args):
    entry_type = TransactionType(args.type) if args.type else None
    table = Table(title="Ledger")
    for column in ("ID", "Type", "Amount", "Reference", "Date", "Description"):
        table.add_column(column)
    for e in platform.ledger.list_transactions(type=entry_type):
        table.add_row(
            e.id, e.type.value, str(e.amount), e.reference,
            e.created_at.strftime("%Y-%m-%d"), e.description[:40],
        )
    console.print(table)

    summary = platform.ledger.get_financial_summary()
    console.print(
        f"Income {summary['income']} | Commission {summary['commission']} | "
        f"Expert credits {summary['expert_credits']} | Withdrawals {summary['withdrawals']} "
        f"({summary['currency']})"
    )


@require_login
def cmd_notifications(platform, user, args):
    table = Table(title="Notifications")
    for column in ("When", "Event", "Title", "Message"):
        table.add_column(column)
    for n in platform.notifications.list_for_user(user.id, unread_only=args.unread):
        table.add_row(n.created_at.strftime("%Y-%m-%d %H:%M"), n.event, n.title, n.message[:60])
        if args.mark_read:
            platform.notifications.mark_read(n.id, user.id)
    console.print(table)


@require_admin
def cmd_stats(platform, user, args):
    """Show platform statistics."""
    stats = platform.get_statistics()
    table = Table(title="Orders by status")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for status, count in stats["orders"]["by_status"].items():
        table.add_row(status, str(count))
    console.print(table)
    console.print(f"Open requests: {stats['requests_open']}")
    console.print(f"Available experts: {stats['experts_available']}")
    console.print(f"Platform net: {stats['finance']['platform_net']} {stats['finance']['currency']}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pengu",
        description="Pengu order lifecycle platform",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Accounts
    login_parser = subparsers.add_parser("login", help="Login to existing account")
    login_parser.add_argument("--email", required=True, help="Account email")
    login_parser.set_defaults(func=cmd_login)

    whoami_parser = subparsers.add_parser("whoami", help="Show the current user")
    whoami_parser.set_defaults(func=cmd_whoami)

    users_parser = subparsers.add_parser("users", help="Account management")
    users_sub = users_parser.add_subparsers(dest="users_command")

    users_create = users_sub.add_parser("create", help="Register a new account")
    users_create.add_argument("--email", required=True)
    users_create.add_argument("--name", required=True)
    users_create.add_argument("--role", choices=[r.value for r in UserRole], default="student")
    users_create.add_argument("--credits", type=int, default=0)
    users_create.set_defaults(func=cmd_users_create)

    users_list = users_sub.add_parser("list", help="List accounts")
    users_list.add_argument("--role", choices=[r.value for r in UserRole])
    users_list.set_defaults(func=cmd_users_list)

    users_grant = users_sub.add_parser("grant-credits", help="Credit a student (admin)")
    users_grant.add_argument("user_id")
    users_grant.add_argument("credits", type=int)
    users_grant.set_defaults(func=cmd_users_grant)

    # Requests
    requests_parser = subparsers.add_parser("requests", help="Student requests")
    requests_sub = requests_parser.add_subparsers(dest="requests_command")

    requests_submit = requests_sub.add_parser("submit", help="Ask for help")
    requests_submit.add_argument("--service-type", required=True)
    requests_submit.add_argument("--topic", required=True)
    requests_submit.add_argument("--details", required=True)
    requests_submit.add_argument("--deadline", help="ISO date, e.g. 2025-01-01")
    requests_submit.add_argument("--attach", action="append", type=parse_attachment, help="name,format,url")
    requests_submit.set_defaults(func=cmd_requests_submit)

    requests_list = requests_sub.add_parser("list", help="List requests")
    requests_list.add_argument("--status", choices=[s.value for s in RequestStatus])
    requests_list.set_defaults(func=cmd_requests_list)

    requests_show = requests_sub.add_parser("show", help="Show a request and its quote")
    requests_show.add_argument("request_id")
    requests_show.set_defaults(func=cmd_requests_show)

    # Quotes
    quotes_parser = subparsers.add_parser("quotes", help="Quotes and negotiation")
    quotes_sub = quotes_parser.add_subparsers(dest="quotes_command")

    quotes_create = quotes_sub.add_parser("create", help="Quote a request (admin)")
    quotes_create.add_argument("request_id")
    quotes_create.add_argument("--amount", type=int, required=True, help="Price in TK")
    quotes_create.add_argument("--timeline", type=int, required=True, help="Days to deliver")
    quotes_create.add_argument("--milestone", action="append", required=True, help="Milestone title (repeat)")
    quotes_create.add_argument("--revisions", type=int)
    quotes_create.add_argument("--scope-notes")
    quotes_create.set_defaults(func=cmd_quotes_create)

    quotes_negotiate = quotes_sub.add_parser("negotiate", help="Reply to a quote")
    quotes_negotiate.add_argument("quote_id")
    quotes_negotiate.add_argument("--message", required=True)
    quotes_negotiate.add_argument("--propose", type=int, help="Counter-offer amount (student)")
    quotes_negotiate.add_argument("--amount", type=int, help="Revised amount (admin)")
    quotes_negotiate.add_argument("--timeline", type=int, help="Revised timeline (admin)")
    quotes_negotiate.add_argument("--milestone", action="append", help="Revised milestones (admin)")
    quotes_negotiate.set_defaults(func=cmd_quotes_negotiate)

    quotes_accept = quotes_sub.add_parser("accept", help="Accept and pay for a quote")
    quotes_accept.add_argument("quote_id")
    quotes_accept.add_argument("--method", required=True, help="Payment method, e.g. bKash")
    quotes_accept.add_argument("--transaction-id", required=True)
    quotes_accept.set_defaults(func=cmd_quotes_accept)

    quotes_expire = quotes_sub.add_parser("expire", help="Expire stale quotes")
    quotes_expire.set_defaults(func=cmd_quotes_expire)

    # Orders
    orders_parser = subparsers.add_parser("orders", help="Orders and milestones")
    orders_sub = orders_parser.add_subparsers(dest="orders_command")

    orders_list = orders_sub.add_parser("list", help="List orders")
    orders_list.add_argument("--status", choices=[s.value for s in OrderStatus])
    orders_list.set_defaults(func=cmd_orders_list)

    orders_show = orders_sub.add_parser("show", help="Show an order")
    orders_show.add_argument("order_id")
    orders_show.set_defaults(func=cmd_orders_show)

    orders_assign = orders_sub.add_parser("assign", help="Assign an expert (admin)")
    orders_assign.add_argument("order_id")
    orders_assign.add_argument("--expert-id", required=True, help="Expert profile ID")
    orders_assign.add_argument("--expected-version", type=int)
    orders_assign.add_argument("--reassign", action="store_true", help="Replace the current expert")
    orders_assign.set_defaults(func=cmd_orders_assign)

    orders_start = orders_sub.add_parser("start", help="Start work (expert)")
    orders_start.add_argument("order_id")
    orders_start.set_defaults(func=cmd_orders_start)

    orders_submit = orders_sub.add_parser("submit", help="Deliver a milestone (expert)")
    orders_submit.add_argument("order_id")
    orders_submit.add_argument("milestone_id")
    orders_submit.add_argument("--file", action="append", type=parse_attachment, required=True, help="name,format,url")
    orders_submit.set_defaults(func=cmd_orders_submit)

    orders_review = orders_sub.add_parser("review", help="QC a delivered milestone (admin)")
    orders_review.add_argument("order_id")
    orders_review.add_argument("milestone_id")
    orders_review.add_argument("decision", choices=["approve", "reject"])
    orders_review.add_argument("--feedback")
    orders_review.set_defaults(func=cmd_orders_review)

    orders_dispute = orders_sub.add_parser("dispute", help="Open a dispute")
    orders_dispute.add_argument("order_id")
    orders_dispute.add_argument("--reason", required=True)
    orders_dispute.set_defaults(func=cmd_orders_dispute)

    orders_resolve = orders_sub.add_parser("resolve", help="Resolve a dispute (admin)")
    orders_resolve.add_argument("order_id")
    orders_resolve.add_argument("--resolution")
    orders_resolve.set_defaults(func=cmd_orders_resolve)

    # Withdrawals
    withdrawals_parser = subparsers.add_parser("withdrawals", help="Withdrawals")
    withdrawals_sub = withdrawals_parser.add_subparsers(dest="withdrawals_command")

    withdrawals_request = withdrawals_sub.add_parser("request", help="Request a withdrawal")
    withdrawals_request.add_argument("--amount", type=int, help="TK (experts)")
    withdrawals_request.add_argument("--method-id", help="Payout method ID (experts)")
    withdrawals_request.add_argument("--credits", type=int, help="Credits (students)")
    withdrawals_request.add_argument("--method", help="bKash, Nagad, Bank or Rocket (students)")
    withdrawals_request.add_argument("--phone")
    withdrawals_request.set_defaults(func=cmd_withdrawals_request)

    withdrawals_list = withdrawals_sub.add_parser("list", help="List withdrawals")
    withdrawals_list.add_argument("--status", choices=[s.value for s in WithdrawalStatus])
    withdrawals_list.set_defaults(func=cmd_withdrawals_list)

    withdrawals_resolve = withdrawals_sub.add_parser("resolve", help="Confirm, pay or reject (admin)")
    withdrawals_resolve.add_argument("withdrawal_id")
    withdrawals_resolve.add_argument("status", choices=["CONFIRMED", "PAID", "REJECTED"])
    withdrawals_resolve.set_defaults(func=cmd_withdrawals_resolve)

    # Reviews
    reviews_parser = subparsers.add_parser("reviews", help="Reviews")
    reviews_sub = reviews_parser.add_subparsers(dest="reviews_command")

    reviews_list = reviews_sub.add_parser("list", help="List reviews")
    reviews_list.add_argument("--status", choices=[s.value for s in ReviewStatus])
    reviews_list.add_argument("--public", action="store_true", help="Approved reviews only")
    reviews_list.set_defaults(func=cmd_reviews_list)

    reviews_submit = reviews_sub.add_parser("submit", help="Rate a completed order")
    reviews_submit.add_argument("review_id")
    reviews_submit.add_argument("--rating", type=int, required=True, choices=range(1, 6))
    reviews_submit.add_argument("--text")
    reviews_submit.set_defaults(func=cmd_reviews_submit)

    reviews_moderate = reviews_sub.add_parser("moderate", help="Approve or reject (admin)")
    reviews_moderate.add_argument("review_id")
    reviews_moderate.add_argument("status", choices=["APPROVED", "REJECTED"])
    reviews_moderate.set_defaults(func=cmd_reviews_moderate)

    # Experts
    experts_parser = subparsers.add_parser("experts", help="Expert roster")
    experts_sub = experts_parser.add_subparsers(dest="experts_command")

    experts_register = experts_sub.add_parser("register", help="Create your expert profile")
    experts_register.add_argument("--specialty", default="General Specialist")
    experts_register.add_argument("--skills", help="Comma-separated skills")
    experts_register.set_defaults(func=cmd_experts_register)

    experts_list = experts_sub.add_parser("list", help="List experts")
    experts_list.add_argument("--available", action="store_true", help="Ranked, assignable experts")
    experts_list.set_defaults(func=cmd_experts_list)

    experts_status = experts_sub.add_parser("status", help="Set vetting status (admin)")
    experts_status.add_argument("expert_id")
    experts_status.add_argument("status", choices=[s.value for s in ExpertStatus])
    experts_status.set_defaults(func=cmd_experts_status)

    experts_online = experts_sub.add_parser("online", help="Go online or offline")
    experts_online.add_argument("state", choices=["on", "off"])
    experts_online.set_defaults(func=cmd_experts_online)

    experts_method = experts_sub.add_parser("add-method", help="Add a payout method")
    experts_method.add_argument("--type", required=True, help="bKash, Nagad, Bank or Rocket")
    experts_method.add_argument("--account-name", required=True)
    experts_method.add_argument("--account-number", required=True)
    experts_method.add_argument("--bank-name")
    experts_method.add_argument("--branch-name")
    experts_method.add_argument("--primary", action="store_true")
    experts_method.set_defaults(func=cmd_experts_add_method)

    # Ledger & stats
    ledger_parser = subparsers.add_parser("ledger", help="Financial ledger (admin)")
    ledger_parser.add_argument("--type", choices=[t.value for t in TransactionType])
    ledger_parser.set_defaults(func=cmd_ledger)

    notifications_parser = subparsers.add_parser("notifications", help="Your notifications")
    notifications_parser.add_argument("--unread", action="store_true")
    notifications_parser.add_argument("--mark-read", action="store_true")
    notifications_parser.set_defaults(func=cmd_notifications)

    stats_parser = subparsers.add_parser("stats", help="Show platform statistics")
    stats_parser.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[list[str]] = None):
    """CLI entry point."""
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
