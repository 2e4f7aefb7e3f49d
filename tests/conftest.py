"""Shared fixtures: a platform on a temp data dir with a controllable clock."""

from datetime import datetime, timedelta, timezone

import pytest

from pengu_platform import PenguPlatform, Settings
from pengu_platform.models import (
    Attachment,
    ExpertStatus,
    PaymentProof,
    QuoteTerms,
    UserRole,
)

START = datetime(2024, 12, 1, 9, 0, tzinfo=timezone.utc)
DEADLINE = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def deliverable(title: str) -> Attachment:
    slug = title.lower().replace(" ", "-")
    return Attachment(name=f"{slug}.pdf", format="pdf", url=f"https://files.pengu.test/{slug}.pdf")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("PENGU_CONFIG", "PENGU_DATA_DIR", "PENGU_COMMISSION_RATE", "PENGU_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=str(tmp_path / "data"))


@pytest.fixture
def platform(settings, clock):
    return PenguPlatform(settings=settings, clock=clock)


# ── Accounts ──────────────────────────────────────────────────────────────

@pytest.fixture
def admin(platform):
    return platform.accounts.create_user("admin@pengu.test", "Nadia Admin", UserRole.ADMIN).unwrap()


@pytest.fixture
def student(platform):
    return platform.accounts.create_user(
        "student@pengu.test", "Sadia Student", UserRole.STUDENT, credits=1000
    ).unwrap()


@pytest.fixture
def other_student(platform):
    return platform.accounts.create_user("other@pengu.test", "Tanvir Other").unwrap()


@pytest.fixture
def make_expert(platform, admin):
    """Factory for an Active, online expert with one bKash payout method."""
    def _make(email="expert@pengu.test", name="Rahim Expert", specialty="Statistics"):
        user = platform.accounts.create_user(email, name, UserRole.EXPERT).unwrap()
        profile = platform.experts.register_expert(user.id, specialty, ["R", "SPSS"]).unwrap()
        platform.experts.set_status(profile.id, admin.id, ExpertStatus.ACTIVE).unwrap()
        platform.experts.set_online(profile.id, user.id, True).unwrap()
        platform.experts.add_payout_method(profile.id, user.id, "bKash", name, "01700000000").unwrap()
        return platform.experts.get_expert(profile.id)
    return _make


@pytest.fixture
def expert(make_expert):
    return make_expert()


# ── Orders ────────────────────────────────────────────────────────────────

@pytest.fixture
def make_request(platform, admin, student):
    def _make(student_user=None, topic="Regression analysis"):
        owner = student_user or student
        return platform.quotes.submit_request(
            owner.id,
            "Assignment",
            topic,
            "Fit an OLS model and interpret the coefficients",
            deadline=DEADLINE,
        ).unwrap()
    return _make


@pytest.fixture
def make_quote(platform, admin, make_request):
    def _make(request=None, amount=15000, timeline=14, milestones=("Outline", "Draft", "Final")):
        request = request or make_request()
        terms = QuoteTerms(amount=amount, timeline=timeline, milestones=list(milestones))
        return platform.quotes.create_quote(request.id, admin.id, terms).unwrap()
    return _make


@pytest.fixture
def make_order(platform, student, make_request, make_quote):
    """Factory for a paid order (PAID_CONFIRMED)."""
    def _make(student_user=None, **quote_kwargs):
        owner = student_user or student
        quote_kwargs.setdefault("request", make_request(student_user=owner))
        quote = make_quote(**quote_kwargs)
        proof = PaymentProof(method="bKash", transaction_id=f"TX-{quote.id}")
        return platform.quotes.accept_quote(quote.id, owner.id, proof).unwrap()
    return _make


@pytest.fixture
def order(make_order):
    return make_order()


@pytest.fixture
def started_order(platform, admin, expert, order):
    """Order assigned to ``expert`` with its first milestone IN_PROGRESS."""
    platform.orders.assign_expert(order.id, admin.id, expert.id).unwrap()
    return platform.orders.start_order(order.id, expert.user_id).unwrap()


@pytest.fixture
def complete_order(platform, admin, expert):
    """Deliver and approve every milestone of a paid order."""
    def _complete(order, assignee=None):
        assignee = assignee or expert
        platform.orders.assign_expert(order.id, admin.id, assignee.id).unwrap()
        platform.orders.start_order(order.id, assignee.user_id).unwrap()
        for milestone in order.milestones:
            platform.orders.submit_milestone(
                order.id, milestone.id, assignee.user_id, [deliverable(milestone.title)]
            ).unwrap()
            platform.orders.review_deliverable(order.id, milestone.id, admin.id, approved=True).unwrap()
        return platform.orders.get_order(order.id)
    return _complete


@pytest.fixture
def files():
    """Build a delivered attachment from a milestone title."""
    return deliverable
