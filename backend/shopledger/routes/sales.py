# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/shopledger/routes/sales.py
"""Sale ledger API routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import sales_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def record_sale_route():
    """
    Record a sale against today's entry.

    Body: inventory_id, quantity, payment_method (cash|mpesa|debt),
    customer_id (required for debt).
    """
    try:
        data = request.get_json(silent=True) or {}
        inventory_id = data.get("inventory_id")
        if not inventory_id:
            return jsonify({"error": "inventory_id required"}), 400

        outcome = sales_service.record_sale(
            g.business_id,
            inventory_id,
            data.get("quantity"),
            data.get("payment_method"),
            data.get("customer_id"),
            user_id=g.current_user.id,
        )
        return jsonify(outcome.to_dict()), 200 if outcome.merged else 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.business_id, sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    """Delete a sale and reverse its stock, totals and debt effects."""
    try:
        outcome = sales_service.delete_sale(g.business_id, sale_id, user_id=g.current_user.id)
        return jsonify(outcome.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/decrement")
@require_auth
def decrement_sale_route(sale_id: int):
    try:
        data = request.get_json(silent=True) or {}
        outcome = sales_service.decrement_sale(
            g.business_id,
            sale_id,
            data.get("quantity"),
            user_id=g.current_user.id,
        )
        return jsonify(outcome.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to decrement sale")
        return jsonify({"error": "Internal server error"}), 500
