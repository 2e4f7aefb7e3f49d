"""The PenguPlatform facade: every workflow wired to one store."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .config import Settings, load_settings
from .notifications import NotificationDispatcher
from .storage import JsonStore
from .workflows import (
    AccountService,
    ExpertRosterService,
    LedgerService,
    OrderLifecycleService,
    QuoteNegotiationService,
    ReviewModerationService,
    WithdrawalService,
)

logger = logging.getLogger(__name__)


class PenguPlatform:
    """Order lifecycle engine.

    Usage:
        platform = PenguPlatform(Path("./data"))
        result = platform.quotes.submit_request(student.id, "Assignment", ...)
        request = result.unwrap()
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or load_settings(data_dir=data_dir)
        if data_dir is not None:
            self.settings.data_dir = str(data_dir)
        self.data_dir = self.settings.data_path

        self.store = JsonStore(self.data_dir, clock=clock)
        self.notifications = NotificationDispatcher(self.store)

        args = (self.store, self.notifications, self.settings)
        self.ledger = LedgerService(*args)
        self.accounts = AccountService(*args)
        self.experts = ExpertRosterService(*args)
        self.quotes = QuoteNegotiationService(*args, ledger=self.ledger)
        self.orders = OrderLifecycleService(*args, ledger=self.ledger)
        self.withdrawals = WithdrawalService(*args, ledger=self.ledger)
        self.reviews = ReviewModerationService(*args)

        logger.debug("Platform ready at %s", self.data_dir)

    def get_statistics(self) -> dict:
        """Dashboard numbers for admins."""
        return {
            "orders": self.orders.get_order_statistics(),
            "finance": self.ledger.get_financial_summary(),
            "requests_open": sum(1 for r in self.quotes.list_requests() if r.is_open),
            "experts_available": len(self.experts.list_available_experts(limit=1000)),
        }
