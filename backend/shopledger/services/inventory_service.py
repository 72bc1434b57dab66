# Overview: Service-layer operations for the inventory catalog and its stock guard.

"""
Inventory invariants (authoritative)

- Item names are trimmed + lowercased and unique per business.
- quantity_available is a mutable counter, never negative after commit.
- The sale path validates stock (ensure_stock) before it decrements anything;
  restore_stock is used by sale reversal.
- Every lookup is business-scoped; another business's item is "not found".
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import DuplicateItemError, InsufficientStockError, ItemNotFoundError
from ..models import InventoryItem, Sale
from ..models.inventory import DEFAULT_CATEGORY, DEFAULT_UNIT
from ..models.notifications import TYPE_STOCK_ALERT
from ..validation import normalize_item_name, require_positive_quantity
from . import notification_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .tenant_service import owned_or_none, require_active_business


ITEM_MUTABLE_FIELDS = {
    "name",
    "cost_price_cents",
    "retail_price_cents",
    "wholesale_price_cents",
    "unit",
    "category",
    "image_url",
}


def get_item(business_id: int, item_id: int, *, lock: bool = False) -> InventoryItem:
    """Business-scoped item lookup; raises ItemNotFoundError."""
    query = db.session.query(InventoryItem).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = owned_or_none(query.first(), business_id, kind="inventory_item")
    if item is None:
        raise ItemNotFoundError("Inventory item not found.", details={"inventory_id": item_id})
    return item


def list_items(
    business_id: int,
    *,
    search: str | None = None,
    category: str | None = None,
) -> list[InventoryItem]:
    require_active_business(business_id)
    q = db.session.query(InventoryItem).filter_by(business_id=business_id)
    if search:
        q = q.filter(InventoryItem.name.contains(search.strip().lower()))
    if category:
        q = q.filter(InventoryItem.category == category)
    return q.order_by(InventoryItem.id.desc()).all()


def _name_taken(business_id: int, name: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(InventoryItem.id).filter_by(business_id=business_id, name=name)
    if exclude_id is not None:
        q = q.filter(InventoryItem.id != exclude_id)
    return q.first() is not None


def add_item(business_id: int, patch: dict, *, user_id: int | None = None) -> InventoryItem:
    """
    Add a catalog item. `patch` is a validated payload (see validation.py).

    Raises DuplicateItemError if the normalized name already exists.
    """
    require_active_business(business_id)
    name = normalize_item_name(patch.get("name"))
    if _name_taken(business_id, name):
        raise DuplicateItemError(f'Item "{name}" already exists in inventory.')

    item = InventoryItem(
        business_id=business_id,
        name=name,
        quantity_available=patch.get("quantity_available") or 0,
        cost_price_cents=patch.get("cost_price_cents") or 0,
        retail_price_cents=patch.get("retail_price_cents") or 0,
        wholesale_price_cents=patch.get("wholesale_price_cents"),
        unit=patch.get("unit") or DEFAULT_UNIT,
        category=patch.get("category") or DEFAULT_CATEGORY,
        image_url=patch.get("image_url"),
    )
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateItemError(f'Item "{name}" already exists in inventory.')

    notification_service.emit(
        business_id=business_id,
        user_id=user_id,
        type=TYPE_STOCK_ALERT,
        title="New Inventory Item Added",
        message=f'Added {item.quantity_available} units of "{item.name}" to inventory.',
        entity_id=item.id,
        entity_type="inventory",
        metadata={
            "name": item.name,
            "cost_price_cents": item.cost_price_cents,
            "retail_price_cents": item.retail_price_cents,
            "quantity_available": item.quantity_available,
            "category": item.category,
        },
    )
    return item


def update_item(business_id: int, item_id: int, patch: dict) -> InventoryItem:
    """Update catalog fields. Stock is changed only through restock/sales."""
    def _op():
        item = get_item(business_id, item_id, lock=True)
        for key, value in patch.items():
            if key not in ITEM_MUTABLE_FIELDS:
                continue
            if key == "name":
                value = normalize_item_name(value)
                if _name_taken(business_id, value, exclude_id=item.id):
                    raise DuplicateItemError(f'Item "{value}" already exists in inventory.')
            setattr(item, key, value)
        db.session.commit()
        return item

    return run_with_retry(_op)


def restock_item(
    business_id: int,
    item_id: int,
    quantity,
    *,
    user_id: int | None = None,
) -> InventoryItem:
    qty = require_positive_quantity(quantity)

    def _op():
        begin_write()
        item = get_item(business_id, item_id, lock=True)
        item.quantity_available += qty
        db.session.commit()
        return item

    item = run_with_retry(_op)
    notification_service.emit(
        business_id=business_id,
        user_id=user_id,
        type=TYPE_STOCK_ALERT,
        title="Inventory Restocked",
        message=f'Added {qty} units of "{item.name}"; {item.quantity_available} now available.',
        entity_id=item.id,
        entity_type="inventory",
        metadata={"quantity": qty, "quantity_available": item.quantity_available},
    )
    return item


def delete_item(business_id: int, item_id: int) -> None:
    """
    Remove an item from the catalog.

    Sales keep their item_name snapshot; their inventory link is cleared.
    """
    def _op():
        begin_write()
        item = get_item(business_id, item_id, lock=True)
        (
            db.session.query(Sale)
            .filter(Sale.inventory_item_id == item.id)
            .update({"inventory_item_id": None}, synchronize_session=False)
        )
        db.session.delete(item)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Inventory item %s deleted for business %s", item_id, business_id)


def ensure_stock(item: InventoryItem, quantity: int) -> None:
    if quantity > item.quantity_available:
        raise InsufficientStockError(
            "Insufficient stock available.",
            details={
                "inventory_id": item.id,
                "requested_quantity": quantity,
                "quantity_available": item.quantity_available,
            },
        )


def decrement_stock(item: InventoryItem, quantity: int) -> None:
    """Decrement inside the caller's transaction (no commit)."""
    ensure_stock(item, quantity)
    item.quantity_available -= quantity


def restore_stock(item: InventoryItem | None, quantity: int) -> None:
    """Return units to stock inside the caller's transaction (no-op for deleted items)."""
    if item is None:
        return
    item.quantity_available = (item.quantity_available or 0) + quantity


def is_low_stock(item: InventoryItem) -> bool:
    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 0)
    return item.quantity_available <= threshold
