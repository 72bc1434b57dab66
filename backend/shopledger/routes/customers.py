# Overview: Flask API routes for customers and their debts; parses input and returns JSON responses.

"""
Customer and debt routes.

Debts are created by debt sales (POST /api/sales); this blueprint only
exposes them and the settlement path (payments).
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import customer_service


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    try:
        links = customer_service.list_customers(g.business_id)
        return jsonify({"customers": [link.to_dict() for link in links], "count": len(links)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("")
@require_auth
def create_customer_route():
    data = request.get_json(silent=True) or {}
    try:
        link = customer_service.add_customer(
            g.business_id,
            full_name=data.get("full_name"),
            phone_number=data.get("phone_number"),
            email_address=data.get("email_address"),
        )
        return jsonify({"customer": link.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        link = customer_service.get_business_customer_link(g.business_id, customer_id)
        pending = customer_service.get_pending_debt(g.business_id, customer_id)
        return jsonify({
            "customer": link.to_dict(),
            "pending_debt": pending.to_dict() if pending else None,
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.get("/<int:customer_id>/debts")
@require_auth
def list_debts_route(customer_id: int):
    """Query params: status (pending|paid), include_items (true|false)."""
    include_items = request.args.get("include_items", "false").lower() == "true"
    try:
        debts = customer_service.list_debts(
            g.business_id,
            customer_id,
            status=request.args.get("status"),
        )
        return jsonify({"debts": [d.to_dict(include_items=include_items) for d in debts]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("/<int:customer_id>/payments")
@require_auth
def record_payment_route(customer_id: int):
    """Body: amount_cents, note (optional)."""
    data = request.get_json(silent=True) or {}
    try:
        debt = customer_service.record_debt_payment(
            g.business_id,
            customer_id,
            data.get("amount_cents"),
            note=data.get("note"),
            user_id=g.current_user.id,
        )
        return jsonify({"debt": debt.to_dict(include_items=True)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record debt payment")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/debts/<int:debt_id>")
@require_auth
def get_debt_route(debt_id: int):
    try:
        debt = customer_service.get_debt(g.business_id, debt_id)
        return jsonify({"debt": debt.to_dict(include_items=True)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
