"""Workflow services for requests, orders, payouts and reviews."""

from .base import WorkflowService
from .accounts import AccountService
from .ledger import LedgerService
from .quote_negotiation import QuoteNegotiationService, validate_terms
from .order_lifecycle import OrderLifecycleService
from .withdrawals import WithdrawalService
from .review_moderation import ReviewModerationService
from .expert_roster import ExpertRosterService, ExpertCandidate

__all__ = [
    "WorkflowService",
    "AccountService",
    "LedgerService",
    "QuoteNegotiationService",
    "validate_terms",
    "OrderLifecycleService",
    "WithdrawalService",
    "ReviewModerationService",
    "ExpertRosterService",
    "ExpertCandidate",
]
