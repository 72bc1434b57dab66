# Overview: Flask API routes for the inventory catalog; parses input and returns JSON responses.

"""
Inventory routes.

Every operation is scoped to the caller's business (g.business_id, set by
@require_auth); items of another business are reported as not found.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import LedgerError
from ..models import InventoryItem
from ..services import inventory_service
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_inventory_item,
    validate_payload,
)


ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "cost_price_cents",
        "retail_price_cents",
        "wholesale_price_cents",
        "quantity_available",
        "unit",
        "category",
        "image_url",
    },
    required_on_create={"name", "cost_price_cents", "retail_price_cents", "quantity_available"},
)

ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(inventory_service.ITEM_MUTABLE_FIELDS),
)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def list_items_route():
    """
    Query params:
    - search: substring match on the normalized name
    - category: exact category
    """
    try:
        items = inventory_service.list_items(
            g.business_id,
            search=request.args.get("search"),
            category=request.args.get("category"),
        )
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.post("")
@require_auth
def create_item_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_CREATE_POLICY, partial=False)
        enforce_rules_inventory_item(patch)
        item = inventory_service.add_item(g.business_id, patch, user_id=g.current_user.id)
        return jsonify({"item": item.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(g.business_id, item_id)
        return jsonify({"item": item.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.patch("/<int:item_id>")
@require_auth
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_UPDATE_POLICY, partial=True)
        enforce_rules_inventory_item(patch)
        item = inventory_service.update_item(g.business_id, item_id, patch)
        return jsonify({"item": item.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/<int:item_id>/restock")
@require_auth
def restock_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item = inventory_service.restock_item(
            g.business_id,
            item_id,
            data.get("quantity"),
            user_id=g.current_user.id,
        )
        return jsonify({"item": item.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restock inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.delete("/<int:item_id>")
@require_auth
def delete_item_route(item_id: int):
    try:
        inventory_service.delete_item(g.business_id, item_id)
        return jsonify({"message": "Item deleted"}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete inventory item")
        return jsonify({"error": "Internal server error"}), 500
