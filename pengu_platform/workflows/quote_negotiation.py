"""Request intake, quoting, negotiation and conversion into orders."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from ..errors import ErrorCode, Result
from ..lifecycle import (
    QuoteAction,
    RequestAction,
    quote_transition,
    request_transition,
)
from ..models import (
    Attachment,
    Milestone,
    NegotiationMessage,
    NotificationKind,
    Order,
    PaymentProof,
    Quote,
    QuoteStatus,
    QuoteTerms,
    Request,
    RequestStatus,
    SenderRole,
    TransactionType,
    UserRole,
)
from ..storage import Transaction
from .base import WorkflowService
from .ledger import LedgerService

logger = logging.getLogger(__name__)


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def validate_terms(terms: QuoteTerms, complete: bool) -> Result:
    """Check quote terms. ``complete`` requires timeline and milestones too."""
    if not _positive_int(terms.amount):
        return Result.failure(ErrorCode.INVALID_AMOUNT, "Amount must be a positive whole number")

    if terms.timeline is None:
        if complete:
            return Result.failure(ErrorCode.MISSING_FIELD, "Timeline (days) is required")
    elif not _positive_int(terms.timeline):
        return Result.failure(ErrorCode.INVALID_FIELD, "Timeline must be a positive number of days")

    if terms.milestones is None:
        if complete:
            return Result.failure(ErrorCode.MISSING_FIELD, "At least one milestone is required")
    elif not terms.milestones or not all(
        isinstance(m, str) and m.strip() for m in terms.milestones
    ):
        return Result.failure(ErrorCode.INVALID_FIELD, "Milestones must be non-empty titles")

    if terms.revisions is not None and (
        not isinstance(terms.revisions, int) or terms.revisions < 0
    ):
        return Result.failure(ErrorCode.INVALID_FIELD, "Revisions cannot be negative")

    return Result.success(terms)


class QuoteNegotiationService(WorkflowService):
    """Moves a request from submission to a paid order."""

    def __init__(self, store, notifier, settings=None, ledger: Optional[LedgerService] = None):
        super().__init__(store, notifier, settings)
        self.ledger = ledger or LedgerService(store, notifier, self.settings)

    # ── Requests ──

    def submit_request(
        self,
        student_id: str,
        service_type: str,
        topic: str,
        details: str,
        deadline: Optional[datetime] = None,
        attachments: Optional[list[Union[Attachment, dict]]] = None,
    ) -> Result:
        """Create a SUBMITTED request and alert the admins."""
        for name, value in [("service_type", service_type), ("topic", topic), ("details", details)]:
            if not (value or "").strip():
                return Result.failure(ErrorCode.MISSING_FIELD, f"{name} is required")

        if deadline is not None:
            deadline = _aware(deadline)
            if deadline <= self.now():
                return Result.failure(ErrorCode.DEADLINE_IN_PAST, "Deadline must be in the future")

        files = [a if isinstance(a, Attachment) else Attachment.from_dict(a) for a in attachments or []]
        incomplete = [f for f in files if not f.is_complete]
        if incomplete:
            return Result.failure(
                ErrorCode.INVALID_ATTACHMENT, "Attachments need a name, format and url"
            )

        with self.store.transaction() as txn:
            student = self._user(txn, student_id, UserRole.STUDENT)
            if not student:
                return student

            request = Request(
                student_id=student_id,
                service_type=service_type.strip(),
                topic=topic.strip(),
                details=details.strip(),
                deadline=deadline,
                attachments=files,
                created_at=self.now(),
            )
            txn.put("requests", request)
            self.notifier.notify_admins(
                txn,
                "request_created",
                "New request",
                f"{student.value.name} requested help with \"{request.topic}\"",
                link=f"/admin/requests/{request.id}",
                subject_id=request.id,
            )

        logger.info("Request %s submitted by %s", request.id, student_id)
        return Result.success(request, "Request submitted")

    def get_request(self, request_id: str) -> Optional[Request]:
        """Get a request by ID."""
        return self.store.get("requests", request_id)

    def list_requests(
        self,
        student_id: Optional[str] = None,
        status: Optional[RequestStatus] = None,
    ) -> list[Request]:
        """Requests, newest first, optionally filtered."""
        requests = self.store.list("requests")
        if student_id:
            requests = [r for r in requests if r.student_id == student_id]
        if status:
            requests = [r for r in requests if r.status == status]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    # ── Quotes ──

    def create_quote(self, request_id: str, admin_id: str, terms: QuoteTerms) -> Result:
        """Issue a quote, superseding any quote still pending for the request."""
        valid = validate_terms(terms, complete=True)
        if not valid:
            return valid
        if terms.expiry is not None and _aware(terms.expiry) <= self.now():
            return Result.failure(ErrorCode.INVALID_FIELD, "Quote expiry must be in the future")

        with self.store.transaction() as txn:
            admin = self._admin(txn, admin_id)
            if not admin:
                return admin

            request = txn.get("requests", request_id)
            if request is None:
                return Result.failure(ErrorCode.REQUEST_NOT_FOUND, f"Request {request_id} not found")

            moved = request_transition(request.status, RequestAction.QUOTE)
            if not moved:
                return self._refused(moved, "create_quote", request_id)

            quote = Quote(
                request_id=request_id,
                issued_by=admin_id,
                currency=self.settings.currency,
                created_at=self.now(),
            )
            quote.apply_terms(terms)
            if quote.expiry is None:
                quote.expiry = self.now() + timedelta(days=self.settings.quote_validity_days)
            else:
                quote.expiry = _aware(quote.expiry)

            for previous in txn.find("quotes", request_id=request_id, status=QuoteStatus.PENDING):
                previous.status = quote_transition(previous.status, QuoteAction.SUPERSEDE).value
                previous.superseded_by = quote.id
                txn.put("quotes", previous)
                logger.info("Quote %s superseded by %s", previous.id, quote.id)

            request.status = moved.value
            txn.put("requests", request)
            txn.put("quotes", quote)

            self.notifier.notify_user(
                txn,
                request.student_id,
                "quote_created",
                "Quote ready",
                f"Your request \"{request.topic}\" was quoted at {quote.amount} {quote.currency}",
                kind=NotificationKind.SUCCESS,
                link=f"/requests/{request.id}",
                subject_id=quote.id,
            )

        logger.info("Quote %s issued for %s: %d %s", quote.id, request_id, quote.amount, quote.currency)
        return Result.success(quote, "Quote created")

    def negotiate_quote(
        self,
        quote_id: str,
        sender_id: str,
        message: str,
        terms: Optional[QuoteTerms] = None,
        related_amount: Optional[int] = None,
        sender_role: Optional[SenderRole] = None,
    ) -> Result:
        """Append to the negotiation thread.

        A student reply moves the request to NEGOTIATION. An admin reply may
        carry revised ``terms``; those replace the quoted terms in the same
        write as the message and put the request back to QUOTED. Revised
        terms always state the amount.
        """
        if not (message or "").strip():
            return Result.failure(ErrorCode.MISSING_FIELD, "Message is required")
        if related_amount is not None and not _positive_int(related_amount):
            return Result.failure(ErrorCode.INVALID_AMOUNT, "Proposed amount must be a positive whole number")
        if terms is not None:
            valid = validate_terms(terms, complete=False)
            if not valid:
                return valid

        with self.store.transaction() as txn:
            found = self._user(txn, sender_id)
            if not found:
                return found
            sender = found.value

            quote = txn.get("quotes", quote_id)
            if quote is None:
                return Result.failure(ErrorCode.QUOTE_NOT_FOUND, f"Quote {quote_id} not found")
            request = txn.get("requests", quote.request_id)

            if sender.role == UserRole.ADMIN:
                role = SenderRole.ADMIN
            elif sender.role == UserRole.STUDENT and sender.id == request.student_id:
                role = SenderRole.STUDENT
            else:
                return Result.failure(ErrorCode.FORBIDDEN, "Only the student and admins can negotiate")
            if sender_role is not None and sender_role != role:
                return Result.failure(ErrorCode.FORBIDDEN, f"Sender is not a {sender_role.value}")
            if terms is not None and role != SenderRole.ADMIN:
                return Result.failure(ErrorCode.FORBIDDEN, "Only admins can revise quote terms")

            if not quote.is_pending:
                return self._refused(
                    Result.failure(ErrorCode.QUOTE_NOT_PENDING, f"Quote is {quote.status.value}"),
                    "negotiate_quote", quote_id,
                )
            if quote.is_expired(self.now()):
                self._expire(txn, quote, request)
                return Result.failure(ErrorCode.QUOTE_EXPIRED, "This quote has expired")

            if role == SenderRole.STUDENT:
                action = RequestAction.NEGOTIATE
            elif terms is not None:
                action = RequestAction.REVISE
            else:
                action = None

            if action is not None:
                moved = request_transition(request.status, action)
                if not moved:
                    return self._refused(moved, "negotiate_quote", quote_id)
                request.status = moved.value
                txn.put("requests", request)

            if terms is not None:
                quote.apply_terms(terms)
                related_amount = terms.amount

            quote.append_message(NegotiationMessage(
                sender_id=sender_id,
                sender_role=role,
                message=message.strip(),
                related_amount=related_amount,
                timestamp=self.now(),
            ))
            txn.put("quotes", quote)

            if role == SenderRole.STUDENT:
                self.notifier.notify_admins(
                    txn,
                    "quote_negotiation",
                    "Quote negotiation",
                    f"{sender.name} replied to quote {quote.id}",
                    link=f"/admin/requests/{request.id}",
                    subject_id=quote.id,
                )
            else:
                self.notifier.notify_user(
                    txn,
                    request.student_id,
                    "quote_revised" if terms is not None else "quote_message",
                    "Quote updated" if terms is not None else "New message on your quote",
                    message.strip(),
                    link=f"/requests/{request.id}",
                    subject_id=quote.id,
                )

        logger.info("Negotiation message on %s from %s", quote_id, role.value)
        return Result.success(quote, "Message sent")

    def accept_quote(self, quote_id: str, student_id: str, payment_proof: PaymentProof) -> Result:
        """Accept a pending quote and create its order.

        Only one acceptance can succeed; a replay finds the quote ACCEPTED
        and fails with QUOTE_NOT_PENDING.
        """
        with self.store.transaction() as txn:
            student = self._user(txn, student_id, UserRole.STUDENT)
            if not student:
                return student

            quote = txn.get("quotes", quote_id)
            if quote is None:
                return Result.failure(ErrorCode.QUOTE_NOT_FOUND, f"Quote {quote_id} not found")
            request = txn.get("requests", quote.request_id)
            if request.student_id != student_id:
                return Result.failure(ErrorCode.FORBIDDEN, "Only the requesting student can accept")

            accepted = quote_transition(quote.status, QuoteAction.ACCEPT)
            if not accepted:
                return self._refused(accepted, "accept_quote", quote_id)

            now = self.now()
            if quote.is_expired(now):
                self._expire(txn, quote, request)
                return Result.failure(ErrorCode.QUOTE_EXPIRED, "This quote has expired")

            if payment_proof is None or not payment_proof.is_complete:
                return Result.failure(
                    ErrorCode.MISSING_FIELD, "Payment method and transaction ID are required"
                )

            moved = request_transition(request.status, RequestAction.ACCEPT)
            if not moved:
                return self._refused(moved, "accept_quote", quote_id)
            converted = request_transition(moved.value, RequestAction.CONVERT)

            quote.status = accepted.value
            quote.accepted_at = now
            request.status = converted.value

            order = Order(
                request_id=request.id,
                quote_id=quote.id,
                student_id=student_id,
                topic=request.topic,
                service_type=request.service_type,
                attachments=list(request.attachments),
                amount=quote.amount,
                currency=quote.currency,
                payment_method=payment_proof.method.strip(),
                transaction_id=payment_proof.transaction_id.strip(),
                milestones=self._schedule_milestones(quote, now),
                created_at=now,
            )

            txn.put("quotes", quote)
            txn.put("requests", request)
            txn.put("orders", order)
            self.ledger.record(
                txn,
                TransactionType.INCOME,
                order.amount,
                f"Payment for order {order.id} via {order.payment_method} ({order.transaction_id})",
                reference=order.id,
                order_id=order.id,
                student_id=student_id,
            )

            self.notifier.notify_admins(
                txn,
                "order_created",
                "New paid order",
                f"Order {order.id} ({order.amount} {order.currency}) needs an expert",
                kind=NotificationKind.SUCCESS,
                link=f"/admin/orders/{order.id}",
                subject_id=order.id,
            )
            self.notifier.notify_user(
                txn,
                student_id,
                "quote_accepted",
                "Order confirmed",
                f"Your order for \"{order.topic}\" is confirmed",
                kind=NotificationKind.SUCCESS,
                link=f"/orders/{order.id}",
                subject_id=order.id,
            )

        logger.info("Quote %s accepted, order %s created", quote_id, order.id)
        return Result.success(order, "Quote accepted")

    @staticmethod
    def _schedule_milestones(quote: Quote, start: datetime) -> list[Milestone]:
        """One PENDING milestone per title, due dates spread across the timeline."""
        total = int(timedelta(days=quote.timeline).total_seconds())
        count = len(quote.milestones)
        return [
            Milestone(
                title=title,
                due_date=start + timedelta(seconds=total * (i + 1) // count),
            )
            for i, title in enumerate(quote.milestones)
        ]

    def _expire(self, txn: Transaction, quote: Quote, request: Request) -> None:
        quote.status = quote_transition(quote.status, QuoteAction.EXPIRE).value
        txn.put("quotes", quote)
        moved = request_transition(request.status, RequestAction.EXPIRE)
        if moved:
            request.status = moved.value
            txn.put("requests", request)
        logger.info("Quote %s expired", quote.id)

    def expire_stale_quotes(self) -> Result:
        """Expire every pending quote past its expiry. Safe to run repeatedly."""
        now = self.now()
        expired = []
        with self.store.transaction() as txn:
            for quote in txn.find("quotes", status=QuoteStatus.PENDING):
                if quote.is_expired(now):
                    self._expire(txn, quote, txn.get("requests", quote.request_id))
                    expired.append(quote.id)
        return Result.success(expired, f"Expired {len(expired)} quote(s)")

    def get_quote(self, quote_id: str) -> Optional[Quote]:
        """Get a quote by ID."""
        return self.store.get("quotes", quote_id)

    def get_active_quote(self, request_id: str) -> Optional[Quote]:
        """The request's quote that has not been superseded, if any."""
        quotes = [
            q for q in self.list_quotes(request_id)
            if q.superseded_by is None
        ]
        return quotes[0] if quotes else None

    def list_quotes(self, request_id: Optional[str] = None) -> list[Quote]:
        """Quotes, newest first."""
        quotes = self.store.list("quotes")
        if request_id:
            quotes = [q for q in quotes if q.request_id == request_id]
        return sorted(quotes, key=lambda q: q.created_at, reverse=True)
