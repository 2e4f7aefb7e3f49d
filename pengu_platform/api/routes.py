"""
Flask REST API for the Pengu order lifecycle engine.

The acting user is identified by the ``X-User-Id`` header; token handling
happens in front of this service.

To run the server:
    python -m pengu_platform.api.routes

Or with Flask:
    FLASK_APP=pengu_platform.api.routes:create_app flask run
"""

import logging
import os
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Callable, Optional

from flask import Flask, request, jsonify, g

from .. import __version__
from ..config import Settings, configure_logging, load_settings
from ..engine import PenguPlatform
from ..errors import ErrorCode, LifecycleError, Result
from ..models import (
    ExpertStatus,
    OrderStatus,
    PaymentProof,
    QuoteTerms,
    RequestStatus,
    ReviewStatus,
    TransactionType,
    WithdrawalKind,
    WithdrawalStatus,
)
from ..models.common import from_iso
from . import schemas

logger = logging.getLogger(__name__)

API = "/api/v1"


def _respond(result: Result, key: str, created: bool = False):
    """Serialize a workflow Result."""
    if not result:
        return jsonify(result.to_dict()), result.category.http_status
    body = result.to_dict()
    value = result.value
    if isinstance(value, list):
        body[key] = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]
    else:
        body[key] = value.to_dict()
    return jsonify(body), 201 if created else 200


def _fail(code: ErrorCode, message: str):
    return _respond(Result.failure(code, message), "")


def _enum_arg(name: str, enum_cls):
    """Parse an optional enum query parameter; raises ValueError if invalid."""
    raw = request.args.get(name)
    return enum_cls(raw) if raw else None


def require_admin(view):
    """Reject the request unless the acting user is an active admin."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        actor = g.platform.accounts.get_user(g.actor_id) if g.actor_id else None
        if actor is None or not actor.is_active:
            return _fail(ErrorCode.USER_NOT_FOUND, f"User {g.actor_id} not found")
        if not actor.is_admin:
            return _fail(ErrorCode.FORBIDDEN, "Only admin accounts may perform this action")
        return view(*args, **kwargs)
    return wrapper


def create_app(
    data_dir: Optional[Path] = None,
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    settings = settings or load_settings(data_dir=data_dir)
    if data_dir is not None:
        settings.data_dir = str(data_dir)
    app.config["PENGU_SETTINGS"] = settings
    app.config["PENGU_CLOCK"] = clock

    # Initialize services
    @app.before_request
    def init_services():
        g.platform = PenguPlatform(
            settings=app.config["PENGU_SETTINGS"],
            clock=app.config["PENGU_CLOCK"],
        )
        g.actor_id = request.headers.get("X-User-Id", "")

    @app.errorhandler(LifecycleError)
    def lifecycle_error(e: LifecycleError):
        return jsonify({"success": False, **e.to_dict()}), e.category.http_status

    @app.errorhandler(ValueError)
    def bad_value(e: ValueError):
        return _fail(ErrorCode.INVALID_FIELD, str(e))

    def body(schema: dict):
        """Validated JSON body, or raise a validation error."""
        data = request.get_json(silent=True)
        if data is None and not schema.get("required"):
            data = {}
        invalid = schemas.validate_body(data, schema)
        if invalid is not None:
            invalid.unwrap()
        return data

    # === Health Check ===

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({"status": "healthy", "version": __version__})

    # === Requests ===

    @app.route(f"{API}/requests", methods=["POST"])
    def submit_request():
        data = body(schemas.REQUEST_CREATE)
        deadline = from_iso(data.get("deadline"))
        result = g.platform.quotes.submit_request(
            student_id=g.actor_id,
            service_type=data["service_type"],
            topic=data["topic"],
            details=data["details"],
            deadline=deadline,
            attachments=data.get("attachments", []),
        )
        return _respond(result, "request", created=True)

    @app.route(f"{API}/requests", methods=["GET"])
    def list_requests():
        """
        List requests.

        Query params:
            student_id: Filter by student
            status: Filter by status
        """
        requests = g.platform.quotes.list_requests(
            student_id=request.args.get("student_id"),
            status=_enum_arg("status", RequestStatus),
        )
        return jsonify({"requests": [r.to_dict() for r in requests], "count": len(requests)})

    @app.route(f"{API}/requests/<request_id>", methods=["GET"])
    def get_request(request_id: str):
        """A request with its quotes, newest first."""
        found = g.platform.quotes.get_request(request_id)
        if not found:
            return _fail(ErrorCode.REQUEST_NOT_FOUND, f"Request not found: {request_id}")
        quotes = g.platform.quotes.list_quotes(request_id)
        return jsonify({**found.to_dict(), "quotes": [q.to_dict() for q in quotes]})

    # === Quotes ===

    @app.route(f"{API}/quotes", methods=["POST"])
    def create_quote():
        data = body(schemas.QUOTE_CREATE)
        terms = QuoteTerms.from_dict(data)
        result = g.platform.quotes.create_quote(data["request_id"], g.actor_id, terms)
        return _respond(result, "quote", created=True)

    @app.route(f"{API}/quotes/<quote_id>", methods=["GET"])
    def get_quote(quote_id: str):
        quote = g.platform.quotes.get_quote(quote_id)
        if not quote:
            return _fail(ErrorCode.QUOTE_NOT_FOUND, f"Quote not found: {quote_id}")
        return jsonify(quote.to_dict())

    @app.route(f"{API}/quotes/<quote_id>/negotiate", methods=["POST"])
    def negotiate_quote(quote_id: str):
        data = body(schemas.QUOTE_NEGOTIATE)
        terms = QuoteTerms.from_dict(data["terms"]) if data.get("terms") else None
        result = g.platform.quotes.negotiate_quote(
            quote_id,
            g.actor_id,
            data["message"],
            terms=terms,
            related_amount=data.get("related_amount"),
        )
        return _respond(result, "quote")

    @app.route(f"{API}/quotes/<quote_id>/accept", methods=["POST"])
    def accept_quote(quote_id: str):
        data = body(schemas.QUOTE_ACCEPT)
        proof = PaymentProof(method=data["payment_method"], transaction_id=data["transaction_id"])
        result = g.platform.quotes.accept_quote(quote_id, g.actor_id, proof)
        return _respond(result, "order", created=True)

    @app.route(f"{API}/quotes/expire", methods=["POST"])
    @require_admin
    def expire_quotes():
        result = g.platform.quotes.expire_stale_quotes()
        return jsonify({"success": True, "expired": result.value, "message": result.message})

    # === Orders ===

    @app.route(f"{API}/orders", methods=["GET"])
    def list_orders():
        """
        List orders.

        Query params:
            student_id: Filter by student
            expert_id: Filter by assigned expert (user ID)
            status: Filter by status
        """
        orders = g.platform.orders.list_orders(
            student_id=request.args.get("student_id"),
            expert_id=request.args.get("expert_id"),
            status=_enum_arg("status", OrderStatus),
        )
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)})

    @app.route(f"{API}/orders/<order_id>", methods=["GET"])
    def get_order(order_id: str):
        order = g.platform.orders.get_order(order_id)
        if not order:
            return _fail(ErrorCode.ORDER_NOT_FOUND, f"Order not found: {order_id}")
        return jsonify(order.to_dict())

    @app.route(f"{API}/orders/<order_id>/assign", methods=["POST"])
    def assign_expert(order_id: str):
        data = body(schemas.ORDER_ASSIGN)
        result = g.platform.orders.assign_expert(
            order_id,
            g.actor_id,
            data["expert_id"],
            expected_version=data.get("expected_version"),
            reassign=data.get("reassign", False),
        )
        return _respond(result, "order")

    @app.route(f"{API}/orders/<order_id>/start", methods=["POST"])
    def start_order(order_id: str):
        return _respond(g.platform.orders.start_order(order_id, g.actor_id), "order")

    @app.route(f"{API}/orders/<order_id>/milestones/<milestone_id>", methods=["PATCH"])
    def update_milestone(order_id: str, milestone_id: str):
        """
        Deliver or review a milestone.

        Request body:
            action: submit (expert), approve or reject (admin)
            files: Delivered attachments, for submit
            feedback: (optional) Revision notes, for reject
        """
        data = body(schemas.MILESTONE_UPDATE)
        if data["action"] == "submit":
            result = g.platform.orders.submit_milestone(
                order_id, milestone_id, g.actor_id, data.get("files", [])
            )
        else:
            result = g.platform.orders.review_deliverable(
                order_id,
                milestone_id,
                g.actor_id,
                approved=data["action"] == "approve",
                feedback=data.get("feedback", ""),
            )
        return _respond(result, "order")

    @app.route(f"{API}/orders/<order_id>/dispute", methods=["POST"])
    def open_dispute(order_id: str):
        data = body(schemas.DISPUTE_OPEN)
        return _respond(g.platform.orders.open_dispute(order_id, g.actor_id, data["reason"]), "order")

    @app.route(f"{API}/orders/<order_id>/dispute/resolve", methods=["POST"])
    def resolve_dispute(order_id: str):
        data = body(schemas.DISPUTE_RESOLVE)
        result = g.platform.orders.resolve_dispute(order_id, g.actor_id, data.get("resolution", ""))
        return _respond(result, "order")

    @app.route(f"{API}/orders/<order_id>/annotations", methods=["POST"])
    def add_annotation(order_id: str):
        data = body(schemas.ANNOTATION_CREATE)
        result = g.platform.orders.add_annotation(
            order_id, g.actor_id, data["file_url"], data["x"], data["y"], data["text"]
        )
        return _respond(result, "annotation", created=True)

    @app.route(f"{API}/orders/<order_id>/annotations/<annotation_id>/resolve", methods=["POST"])
    def resolve_annotation(order_id: str, annotation_id: str):
        result = g.platform.orders.resolve_annotation(order_id, annotation_id, g.actor_id)
        return _respond(result, "annotation")

    # === Withdrawals ===

    @app.route(f"{API}/withdrawals", methods=["POST"])
    def request_withdrawal():
        data = body(schemas.WITHDRAWAL_CREATE)
        if data["kind"] == WithdrawalKind.EXPERT.value:
            result = g.platform.withdrawals.request_expert_withdrawal(
                g.actor_id, data["amount"], data["method_id"]
            )
        else:
            result = g.platform.withdrawals.request_student_withdrawal(
                g.actor_id,
                data["amount_credits"],
                data["method"],
                phone_number=data.get("phone_number"),
                method_details=data.get("method_details"),
            )
        return _respond(result, "withdrawal", created=True)

    @app.route(f"{API}/withdrawals", methods=["GET"])
    def list_withdrawals():
        withdrawals = g.platform.withdrawals.list_withdrawals(
            expert_id=request.args.get("expert_id"),
            student_id=request.args.get("student_id"),
            status=_enum_arg("status", WithdrawalStatus),
            kind=_enum_arg("kind", WithdrawalKind),
        )
        return jsonify({"withdrawals": [w.to_dict() for w in withdrawals], "count": len(withdrawals)})

    @app.route(f"{API}/withdrawals/<withdrawal_id>", methods=["PATCH"])
    def update_withdrawal(withdrawal_id: str):
        data = body(schemas.WITHDRAWAL_UPDATE)
        result = g.platform.withdrawals.set_status(
            withdrawal_id, g.actor_id, WithdrawalStatus(data["status"])
        )
        return _respond(result, "withdrawal")

    # === Reviews ===

    @app.route(f"{API}/reviews/<review_id>", methods=["PUT"])
    def moderate_review(review_id: str):
        data = body(schemas.REVIEW_MODERATE)
        result = g.platform.reviews.moderate_review(review_id, g.actor_id, ReviewStatus(data["status"]))
        return _respond(result, "review")

    @app.route(f"{API}/reviews/<review_id>/feedback", methods=["POST"])
    def submit_review(review_id: str):
        data = body(schemas.REVIEW_FEEDBACK)
        result = g.platform.reviews.submit_review(
            review_id, g.actor_id, data["rating"], data.get("text", "")
        )
        return _respond(result, "review")

    @app.route(f"{API}/reviews/public", methods=["GET"])
    def public_reviews():
        reviews = g.platform.reviews.list_public_reviews()
        return jsonify({"reviews": [r.to_dict() for r in reviews], "count": len(reviews)})

    # === Experts ===

    @app.route(f"{API}/experts", methods=["GET"])
    def list_experts():
        """
        List experts.

        Query params:
            available: "true" for assignable experts, ranked
            status: Filter by status
        """
        if request.args.get("available", "").lower() == "true":
            candidates = g.platform.experts.list_available_experts(
                limit=int(request.args.get("limit", 20))
            )
            return jsonify({"experts": [c.to_dict() for c in candidates], "count": len(candidates)})
        experts = g.platform.experts.list_experts(status=_enum_arg("status", ExpertStatus))
        return jsonify({"experts": [e.to_dict() for e in experts], "count": len(experts)})

    @app.route(f"{API}/experts", methods=["POST"])
    def register_expert():
        data = body(schemas.EXPERT_REGISTER)
        result = g.platform.experts.register_expert(
            g.actor_id,
            specialty=data.get("specialty", "General Specialist"),
            skills=data.get("skills"),
            bio=data.get("bio", ""),
        )
        return _respond(result, "expert", created=True)

    @app.route(f"{API}/experts/<expert_id>", methods=["PATCH"])
    def update_expert(expert_id: str):
        data = body(schemas.EXPERT_UPDATE)
        experts = g.platform.experts
        result = None
        if "status" in data:
            result = experts.set_status(expert_id, g.actor_id, ExpertStatus(data["status"]))
        if "online" in data and (result is None or result):
            result = experts.set_online(expert_id, g.actor_id, data["online"])
        if {"specialty", "skills", "bio"} & data.keys() and (result is None or result):
            result = experts.update_profile(
                expert_id,
                g.actor_id,
                specialty=data.get("specialty"),
                skills=data.get("skills"),
                bio=data.get("bio"),
            )
        return _respond(result, "expert")

    # === Ledger & Stats ===

    @app.route(f"{API}/ledger", methods=["GET"])
    @require_admin
    def list_ledger():
        entries = g.platform.ledger.list_transactions(
            type=_enum_arg("type", TransactionType),
            order_id=request.args.get("order_id"),
        )
        return jsonify({
            "transactions": [e.to_dict() for e in entries],
            "summary": g.platform.ledger.get_financial_summary(),
        })

    @app.route(f"{API}/stats", methods=["GET"])
    @require_admin
    def stats():
        """Get platform statistics."""
        return jsonify(g.platform.get_statistics())

    # === Notifications ===

    @app.route(f"{API}/notifications", methods=["GET"])
    def list_notifications():
        unread = request.args.get("unread", "").lower() == "true"
        notifications = g.platform.notifications.list_for_user(g.actor_id, unread_only=unread)
        return jsonify({
            "notifications": [n.to_dict() for n in notifications],
            "count": len(notifications),
        })

    return app


def main():
    """Run the API server."""
    settings = load_settings()
    configure_logging(settings.log_level)
    app = create_app(settings=settings)
    port = int(os.environ.get("PORT", 8000))
    debug = os.environ.get("DEBUG", "false").lower() == "true"

    logger.info("Starting Pengu API on port %d (data: %s)", port, settings.data_path)
    app.run(host="0.0.0.0", port=port, debug=debug)


if __name__ == "__main__":
    main()
