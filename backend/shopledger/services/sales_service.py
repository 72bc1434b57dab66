"""
Sale ledger - per-item sales against the day's cash drawer.

WHY: A sale touches four aggregates at once (inventory stock, the sale row,
the daily entry totals and, on credit, the customer's debt). Each operation
here is one transaction: every precondition is checked before the first
write, and any failure rolls everything back.

Merge contract: at most one Sale row per (daily entry, item, payment method).
Recording the same item/method again on the same day increments that row.

Notifications are emitted after commit and can never undo a sale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..errors import DayClosedError, InvalidQuantityError, MissingCustomerError, SaleNotFoundError, ValidationError
from ..models import BusinessCustomer, DailyEntry, Debt, InventoryItem, PaymentMethod, Sale
from ..models.notifications import TYPE_DEBT_REMINDER, TYPE_PAYMENT_ALERT, TYPE_STOCK_ALERT
from ..validation import require_positive_quantity
from . import customer_service, inventory_service, notification_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .daily_entry_service import apply_sale_delta, get_entry, get_or_create_entry
from .tenant_service import owned_or_none, require_active_business


@dataclass
class SaleOutcome:
    """Result of a sale mutation, captured inside the transaction."""
    sale: Sale | None
    entry: DailyEntry
    item: InventoryItem | None
    payment_method: PaymentMethod
    quantity: int
    amount_cents: int
    profit_cents: int
    item_name: str = ""
    merged: bool = False
    removed: bool = False
    debt: Debt | None = None
    debt_created: bool = False
    touched_debts: list[Debt] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale.id if self.sale is not None and not self.removed else None,
            "sale": self.sale.to_dict() if self.sale is not None and not self.removed else None,
            "merged": self.merged,
            "removed": self.removed,
            "entry": self.entry.to_dict(),
            "debt": self.debt.to_dict() if self.debt is not None else None,
        }


def _parse_method(payment_method) -> PaymentMethod:
    try:
        return PaymentMethod.parse(payment_method)
    except ValueError as exc:
        raise ValidationError(str(exc))


def _round_share(total: int, part: int, whole: int) -> int:
    """total * part / whole, nearest integer (half-up)."""
    return (total * part + whole // 2) // whole


def _find_mergeable_sale(entry_id: int, item_id: int, method: PaymentMethod) -> Sale | None:
    return lock_for_update(
        db.session.query(Sale).filter_by(
            daily_entry_id=entry_id,
            inventory_item_id=item_id,
            payment_method=method,
        )
    ).first()


def get_sale(business_id: int, sale_id: int, *, lock: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        query = lock_for_update(query)
    sale = owned_or_none(query.first(), business_id, kind="sale")
    if sale is None:
        raise SaleNotFoundError("Sale not found.", details={"sale_id": sale_id})
    return sale


def _require_open(entry: DailyEntry) -> None:
    if entry.closed:
        raise DayClosedError(
            "Daily entry is closed; reopen it before changing its sales.",
            details={"entry_id": entry.id, "date": entry.business_date.isoformat()},
        )


def record_sale(
    business_id: int,
    inventory_id: int,
    quantity,
    payment_method,
    customer_id: int | None = None,
    *,
    user_id: int | None = None,
    occurred_at: datetime | None = None,
) -> SaleOutcome:
    """
    Record units of an item sold today.

    Raises InvalidQuantityError, ValidationError (bad method),
    MissingCustomerError, NoActiveBusinessError, ItemNotFoundError,
    CustomerNotFoundError, InsufficientStockError, DayClosedError.
    """
    qty = require_positive_quantity(quantity)
    method = _parse_method(payment_method)
    if method is PaymentMethod.DEBT and not customer_id:
        raise MissingCustomerError("Customer must be selected for debt sales.")
    business = require_active_business(business_id)

    def _op():
        begin_write()
        item = inventory_service.get_item(business_id, inventory_id, lock=True)
        inventory_service.ensure_stock(item, qty)

        link: BusinessCustomer | None = None
        if method is PaymentMethod.DEBT:
            link = customer_service.get_business_customer_link(business_id, customer_id, lock=True)

        entry, _ = get_or_create_entry(business, occurred_at)
        _require_open(entry)

        amount = item.retail_price_cents * qty
        profit = item.unit_profit_cents * qty

        sale = _find_mergeable_sale(entry.id, item.id, method)
        merged = sale is not None
        if merged:
            sale.quantity_sold += qty
            sale.total_amount_cents += amount
            sale.total_profit_cents += profit
        else:
            sale = Sale(
                business_id=business_id,
                daily_entry_id=entry.id,
                inventory_item_id=item.id,
                item_name=item.name,
                payment_method=method,
                quantity_sold=qty,
                total_amount_cents=amount,
                total_profit_cents=profit,
                created_by_user_id=user_id,
            )
            db.session.add(sale)
            db.session.flush()

        inventory_service.decrement_stock(item, qty)

        debt = None
        debt_created = False
        if link is not None:
            debt, debt_created = customer_service.charge_debt(
                business_id=business_id,
                link=link,
                item=item,
                sale=sale,
                quantity=qty,
                amount_cents=amount,
                occurred_at=occurred_at,
            )

        apply_sale_delta(entry, method, amount, profit)
        db.session.commit()
        return SaleOutcome(
            sale=sale,
            entry=entry,
            item=item,
            payment_method=method,
            quantity=qty,
            amount_cents=amount,
            profit_cents=profit,
            item_name=sale.item_name,
            merged=merged,
            debt=debt,
            debt_created=debt_created,
        )

    outcome = run_with_retry(_op, retry_on_integrity=True)
    try:
        _notify_recorded(business_id, user_id, outcome)
    except Exception:
        # Sale is already committed
        db.session.rollback()
        current_app.logger.exception("Failed to emit sale notifications for business %s", business_id)
    return outcome


def _notify_recorded(business_id: int, user_id: int | None, outcome: SaleOutcome) -> None:
    item = outcome.item
    if outcome.payment_method is PaymentMethod.DEBT:
        notification_service.emit(
            business_id=business_id,
            user_id=user_id,
            type=TYPE_DEBT_REMINDER,
            title="New Customer Debt Created" if outcome.debt_created else "Existing Customer Debt Updated",
            message=f"{item.name} ({outcome.quantity}x) recorded as debt for customer.",
            entity_id=outcome.debt.id if outcome.debt is not None else outcome.sale.id,
            entity_type="debt",
            metadata={
                "inventory_id": item.id,
                "quantity": outcome.quantity,
                "amount_cents": outcome.amount_cents,
                "customer_id": outcome.debt.customer_id if outcome.debt is not None else None,
            },
        )
    else:
        notification_service.emit(
            business_id=business_id,
            user_id=user_id,
            type=TYPE_PAYMENT_ALERT,
            title="Sale Updated" if outcome.merged else "Sale Recorded",
            message=(
                f"{outcome.quantity} x {item.name} sold for {outcome.amount_cents} "
                f"({outcome.payment_method.value})"
            ),
            entity_id=outcome.sale.id,
            entity_type="sale",
            metadata={
                "inventory_id": item.id,
                "quantity": outcome.quantity,
                "amount_cents": outcome.amount_cents,
                "payment_method": outcome.payment_method.value,
            },
        )

    if inventory_service.is_low_stock(item):
        notification_service.emit(
            business_id=business_id,
            user_id=user_id,
            type=TYPE_STOCK_ALERT,
            title="Low Stock",
            message=f'Only {item.quantity_available} {item.unit} of "{item.name}" left.',
            entity_id=item.id,
            entity_type="inventory",
            metadata={"quantity_available": item.quantity_available},
        )


def _linked_item(business_id: int, sale: Sale) -> InventoryItem | None:
    if sale.inventory_item_id is None:
        return None
    item = lock_for_update(db.session.query(InventoryItem).filter_by(id=sale.inventory_item_id)).first()
    return owned_or_none(item, business_id, kind="inventory_item")


def delete_sale(business_id: int, sale_id: int, *, user_id: int | None = None) -> SaleOutcome:
    """
    Remove a sale row and reverse its effects.

    Stock is restored, the entry's totals for the sale's channel are reduced
    by the full row amounts, and for debt sales the debt contribution is
    reversed (debts_total, Debt balances, cached customer balance).

    Raises SaleNotFoundError, DayClosedError, DebtSettledError.
    """
    require_active_business(business_id)

    def _op():
        begin_write()
        sale = get_sale(business_id, sale_id, lock=True)
        entry = get_entry(business_id, sale.daily_entry_id, lock=True)
        _require_open(entry)

        method = sale.payment_method
        qty = sale.quantity_sold
        amount = sale.total_amount_cents
        profit = sale.total_profit_cents

        item = _linked_item(business_id, sale)
        inventory_service.restore_stock(item, qty)

        touched: list[Debt] = []
        if method is PaymentMethod.DEBT and qty > 0:
            touched = customer_service.reverse_debt_for_sale(
                business_id=business_id,
                sale=sale,
                quantity=qty,
                amount_cents=amount,
            )

        item_name = sale.item_name
        apply_sale_delta(entry, method, -amount, -profit)
        db.session.delete(sale)
        db.session.commit()
        return SaleOutcome(
            sale=sale,
            entry=entry,
            item=item,
            payment_method=method,
            quantity=qty,
            amount_cents=amount,
            profit_cents=profit,
            item_name=item_name,
            removed=True,
            touched_debts=touched,
        )

    outcome = run_with_retry(_op)
    current_app.logger.info("Sale %s deleted for business %s", sale_id, business_id)
    notification_service.emit(
        business_id=business_id,
        user_id=user_id,
        type=TYPE_PAYMENT_ALERT,
        title="Sale Deleted",
        message=f"Removed {outcome.quantity} x {outcome.item_name} ({outcome.payment_method.value}).",
        entity_id=sale_id,
        entity_type="sale",
        metadata={"amount_cents": outcome.amount_cents, "payment_method": outcome.payment_method.value},
    )
    return outcome


def decrement_sale(
    business_id: int,
    sale_id: int,
    quantity,
    *,
    user_id: int | None = None,
) -> SaleOutcome:
    """
    Take `quantity` units back off a sale row.

    Per-unit price and cost come from the live item; if the item no longer
    exists, from the row's own averages. The amount and profit taken back are
    capped at the row's remaining totals. Taking back every unit reverses the
    row's exact totals and removes the row.

    Raises InvalidQuantityError, SaleNotFoundError, DayClosedError, DebtSettledError.
    """
    qty = require_positive_quantity(quantity)
    require_active_business(business_id)

    def _op():
        begin_write()
        sale = get_sale(business_id, sale_id, lock=True)
        if qty > sale.quantity_sold:
            raise InvalidQuantityError(
                "Cannot decrement more units than were sold.",
                details={"quantity": qty, "quantity_sold": sale.quantity_sold},
            )
        entry = get_entry(business_id, sale.daily_entry_id, lock=True)
        _require_open(entry)

        item = _linked_item(business_id, sale)
        method = sale.payment_method

        if qty == sale.quantity_sold:
            amount = sale.total_amount_cents
            profit = sale.total_profit_cents
        elif item is not None:
            # Live price, but never more than the row still holds
            amount = min(item.retail_price_cents * qty, sale.total_amount_cents)
            profit = min(amount - item.cost_price_cents * qty, sale.total_profit_cents)
        else:
            amount = _round_share(sale.total_amount_cents, qty, sale.quantity_sold)
            profit = _round_share(sale.total_profit_cents, qty, sale.quantity_sold)

        touched: list[Debt] = []
        if method is PaymentMethod.DEBT:
            touched = customer_service.reverse_debt_for_sale(
                business_id=business_id,
                sale=sale,
                quantity=qty,
                amount_cents=amount,
            )

        sale.quantity_sold -= qty
        sale.total_amount_cents -= amount
        sale.total_profit_cents -= profit
        inventory_service.restore_stock(item, qty)
        apply_sale_delta(entry, method, -amount, -profit)

        item_name = sale.item_name
        removed = sale.quantity_sold == 0
        if removed:
            db.session.delete(sale)
        db.session.commit()
        return SaleOutcome(
            sale=sale,
            entry=entry,
            item=item,
            payment_method=method,
            quantity=qty,
            amount_cents=amount,
            profit_cents=profit,
            item_name=item_name,
            removed=removed,
            touched_debts=touched,
        )

    outcome = run_with_retry(_op)
    notification_service.emit(
        business_id=business_id,
        user_id=user_id,
        type=TYPE_PAYMENT_ALERT,
        title="Sale Adjusted",
        message=f"Took back {outcome.quantity} x {outcome.item_name} ({outcome.payment_method.value}).",
        entity_id=sale_id,
        entity_type="sale",
        metadata={
            "quantity": outcome.quantity,
            "amount_cents": outcome.amount_cents,
            "removed": outcome.removed,
        },
    )
    return outcome
