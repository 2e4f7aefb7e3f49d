"""Platform data models for requests, quotes, orders, payouts and reviews."""

from .common import Attachment
from .user import User, UserRole
from .request import Request, RequestStatus
from .quote import Quote, QuoteStatus, QuoteTerms, NegotiationMessage, SenderRole, PaymentProof
from .order import Order, OrderStatus, Milestone, MilestoneStatus, Annotation
from .expert import Expert, ExpertStatus, PayoutMethod
from .withdrawal import WithdrawalRequest, WithdrawalStatus, WithdrawalKind, PayoutChannel
from .review import Review, ReviewStatus
from .transaction import FinancialTransaction, TransactionType
from .notification import Notification, NotificationKind

__all__ = [
    "Attachment",
    # Accounts
    "User",
    "UserRole",
    "Expert",
    "ExpertStatus",
    "PayoutMethod",
    # Requests & Quotes
    "Request",
    "RequestStatus",
    "Quote",
    "QuoteStatus",
    "QuoteTerms",
    "NegotiationMessage",
    "SenderRole",
    "PaymentProof",
    # Orders
    "Order",
    "OrderStatus",
    "Milestone",
    "MilestoneStatus",
    "Annotation",
    # Money
    "WithdrawalRequest",
    "WithdrawalStatus",
    "WithdrawalKind",
    "PayoutChannel",
    "FinancialTransaction",
    "TransactionType",
    # Feedback
    "Review",
    "ReviewStatus",
    "Notification",
    "NotificationKind",
]
