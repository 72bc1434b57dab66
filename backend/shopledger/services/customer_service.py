# Overview: Customer ledger: business-customer links, pending debts, debt line items and settlement.

"""
Customer / debt sub-ledger invariants (authoritative)

- At most one `pending` Debt per (business, customer). Debt sales accumulate
  into it; a new Debt is opened only when none is pending.
- Charges raise amount_owed, remaining_balance and balance together, and the
  BusinessCustomer cached balance by the same amount, in the same transaction.
- DebtItems are append-only. Reversals append negative rows.
- Payments raise amount_paid and lower remaining_balance/balance (and the
  cached balance); a debt whose remaining balance reaches zero is `paid`.
- remaining_balance == amount_owed - amount_paid at all times.

Functions prefixed with charge_/reverse_ run inside the caller's transaction
and never commit.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..errors import (
    CustomerNotFoundError,
    DebtNotFoundError,
    DebtSettledError,
    OverpaymentError,
    ValidationError,
)
from ..models import BusinessCustomer, Customer, Debt, DebtItem, DebtPayment, InventoryItem, Sale
from ..models.customers import DEBT_ITEM_CHARGE, DEBT_ITEM_REVERSAL, DEBT_PAID, DEBT_PENDING, VALID_DEBT_STATUSES
from ..models.notifications import TYPE_PAYMENT_ALERT
from ..time_utils import utcnow
from ..validation import require_positive_amount
from . import notification_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .tenant_service import require_active_business


def add_customer(
    business_id: int,
    *,
    full_name: str,
    phone_number: str,
    email_address: str | None = None,
) -> BusinessCustomer:
    """Create a customer and link it to the business with a zero balance."""
    require_active_business(business_id)
    full_name = (full_name or "").strip()
    phone_number = (phone_number or "").strip()
    if not full_name:
        raise ValidationError("full_name is required")
    if not phone_number:
        raise ValidationError("phone_number is required")

    customer = Customer(
        full_name=full_name,
        phone_number=phone_number,
        email_address=(email_address or "").strip() or None,
    )
    db.session.add(customer)
    db.session.flush()

    link = BusinessCustomer(business_id=business_id, customer_id=customer.id, balance_cents=0, joined_at=utcnow())
    db.session.add(link)
    db.session.commit()
    return link


def list_customers(business_id: int) -> list[BusinessCustomer]:
    require_active_business(business_id)
    return (
        db.session.query(BusinessCustomer)
        .filter_by(business_id=business_id)
        .order_by(BusinessCustomer.joined_at.desc(), BusinessCustomer.id.desc())
        .all()
    )


def get_business_customer_link(business_id: int, customer_id: int, *, lock: bool = False) -> BusinessCustomer:
    """
    The customer as seen by this business.

    Raises CustomerNotFoundError when the customer is not linked to the business.
    """
    query = db.session.query(BusinessCustomer).filter_by(business_id=business_id, customer_id=customer_id)
    if lock:
        query = lock_for_update(query)
    link = query.first()
    if link is None:
        raise CustomerNotFoundError("Customer not found.", details={"customer_id": customer_id})
    return link


def get_pending_debt(business_id: int, customer_id: int, *, lock: bool = False) -> Debt | None:
    query = db.session.query(Debt).filter_by(
        business_id=business_id,
        customer_id=customer_id,
        status=DEBT_PENDING,
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_or_create_pending_debt(
    business_id: int,
    customer_id: int,
    *,
    sale_id: int | None = None,
    occurred_at: datetime | None = None,
) -> tuple[Debt, bool]:
    """
    Return (debt, created). A created debt starts at zero and is flushed, not committed.
    """
    debt = get_pending_debt(business_id, customer_id, lock=True)
    if debt is not None:
        return debt, False

    debt = Debt(
        business_id=business_id,
        customer_id=customer_id,
        sale_id=sale_id,
        debt_date=occurred_at or utcnow(),
        amount_owed_cents=0,
        amount_paid_cents=0,
        remaining_balance_cents=0,
        balance_cents=0,
        status=DEBT_PENDING,
    )
    db.session.add(debt)
    db.session.flush()
    return debt, True


def charge_debt(
    *,
    business_id: int,
    link: BusinessCustomer,
    item: InventoryItem,
    sale: Sale,
    quantity: int,
    amount_cents: int,
    occurred_at: datetime | None = None,
) -> tuple[Debt, bool]:
    """
    Add a debt sale to the customer's pending debt (opening one if needed),
    append its DebtItem and raise the cached link balance.
    """
    debt, created = get_or_create_pending_debt(
        business_id,
        link.customer_id,
        sale_id=sale.id,
        occurred_at=occurred_at,
    )
    debt.amount_owed_cents += amount_cents
    debt.remaining_balance_cents += amount_cents
    debt.balance_cents += amount_cents

    db.session.add(DebtItem(
        debt_id=debt.id,
        sale_id=sale.id,
        inventory_item_id=item.id,
        kind=DEBT_ITEM_CHARGE,
        name=item.name,
        quantity_taken=quantity,
        price_cents=item.retail_price_cents,
        total_cents=amount_cents,
    ))
    link.balance_cents += amount_cents
    return debt, created


def _sale_contributions(sale_id: int) -> list[dict]:
    """
    Net units/amount each debt still carries from a sale, most recent first.
    """
    rows = (
        db.session.query(DebtItem)
        .filter(DebtItem.sale_id == sale_id)
        .order_by(DebtItem.id.asc())
        .all()
    )
    by_debt: dict[int, dict] = {}
    for row in rows:
        entry = by_debt.setdefault(row.debt_id, {"debt_id": row.debt_id, "quantity": 0, "amount": 0, "last_id": 0, "name": row.name})
        entry["quantity"] += row.quantity_taken
        entry["amount"] += row.total_cents
        if row.kind == DEBT_ITEM_CHARGE:
            entry["last_id"] = max(entry["last_id"], row.id)
    contributions = [c for c in by_debt.values() if c["quantity"] > 0]
    contributions.sort(key=lambda c: c["last_id"], reverse=True)
    return contributions


def reverse_debt_for_sale(
    *,
    business_id: int,
    sale: Sale,
    quantity: int,
    amount_cents: int,
) -> list[Debt]:
    """
    Undo `quantity` units / `amount_cents` of a debt sale's contribution.

    Units are taken back from the most recently charged debts first, and
    the amount is split across them in proportion to the units taken (the
    last chunk absorbs rounding). Raises DebtSettledError when a touched
    debt is no longer pending or has been paid down below the reversal.
    """
    contributions = _sale_contributions(sale.id)
    plan: list[tuple[dict, int]] = []
    remaining_units = quantity
    for contribution in contributions:
        if remaining_units <= 0:
            break
        take = min(remaining_units, contribution["quantity"])
        plan.append((contribution, take))
        remaining_units -= take

    touched: list[Debt] = []
    allocated = 0
    for index, (contribution, take) in enumerate(plan):
        if index == len(plan) - 1:
            share = amount_cents - allocated
        else:
            share = amount_cents * take // quantity
        allocated += share

        debt = lock_for_update(db.session.query(Debt).filter_by(id=contribution["debt_id"])).first()
        if debt is None or debt.business_id != business_id:
            continue
        if debt.status != DEBT_PENDING:
            raise DebtSettledError(
                "Cannot reverse a sale whose debt has already been settled.",
                details={"debt_id": debt.id, "status": debt.status},
            )
        if debt.remaining_balance_cents < share:
            raise DebtSettledError(
                "Debt payments exceed the amount being reversed.",
                details={"debt_id": debt.id, "remaining_balance_cents": debt.remaining_balance_cents},
            )

        debt.amount_owed_cents -= share
        debt.remaining_balance_cents -= share
        debt.balance_cents -= share
        db.session.add(DebtItem(
            debt_id=debt.id,
            sale_id=sale.id,
            inventory_item_id=sale.inventory_item_id,
            kind=DEBT_ITEM_REVERSAL,
            name=contribution["name"],
            quantity_taken=-take,
            price_cents=share // take if take else 0,
            total_cents=-share,
        ))

        link = get_business_customer_link(business_id, debt.customer_id, lock=True)
        link.balance_cents -= share
        touched.append(debt)

    return touched


def record_debt_payment(
    business_id: int,
    customer_id: int,
    amount_cents,
    *,
    note: str | None = None,
    user_id: int | None = None,
) -> Debt:
    """
    Settlement path: apply a payment to the customer's pending debt.

    Raises DebtNotFoundError if nothing is pending and OverpaymentError if the
    payment exceeds the remaining balance. Daily entry totals are not touched.
    """
    require_active_business(business_id)
    amount = require_positive_amount(amount_cents)

    def _op():
        begin_write()
        link = get_business_customer_link(business_id, customer_id, lock=True)
        debt = get_pending_debt(business_id, customer_id, lock=True)
        if debt is None:
            raise DebtNotFoundError("Customer has no pending debt.", details={"customer_id": customer_id})
        if amount > debt.remaining_balance_cents:
            raise OverpaymentError(
                "Payment exceeds the remaining balance.",
                details={"remaining_balance_cents": debt.remaining_balance_cents, "amount_cents": amount},
            )

        debt.amount_paid_cents += amount
        debt.remaining_balance_cents -= amount
        debt.balance_cents -= amount
        link.balance_cents -= amount
        if debt.remaining_balance_cents == 0:
            debt.status = DEBT_PAID
            debt.settled_at = utcnow()

        db.session.add(DebtPayment(
            debt_id=debt.id,
            business_id=business_id,
            customer_id=customer_id,
            amount_cents=amount,
            note=(note or "").strip() or None,
            recorded_by_user_id=user_id,
        ))
        db.session.commit()
        return debt

    debt = run_with_retry(_op)
    settled = debt.status == DEBT_PAID
    notification_service.emit(
        business_id=business_id,
        user_id=user_id,
        type=TYPE_PAYMENT_ALERT,
        title="Debt Settled" if settled else "Debt Payment Received",
        message=f"Received {amount} toward debt #{debt.id}; remaining {debt.remaining_balance_cents}.",
        entity_id=debt.id,
        entity_type="debt",
        metadata={"customer_id": customer_id, "amount_cents": amount, "settled": settled},
    )
    return debt


def list_debts(business_id: int, customer_id: int, *, status: str | None = None) -> list[Debt]:
    get_business_customer_link(business_id, customer_id)
    q = db.session.query(Debt).filter_by(business_id=business_id, customer_id=customer_id)
    if status:
        if status not in VALID_DEBT_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(sorted(VALID_DEBT_STATUSES))}")
        q = q.filter_by(status=status)
    return q.order_by(Debt.debt_date.desc(), Debt.id.desc()).all()


def get_debt(business_id: int, debt_id: int) -> Debt:
    debt = db.session.get(Debt, debt_id)
    if debt is None or debt.business_id != business_id:
        raise DebtNotFoundError("Debt not found.", details={"debt_id": debt_id})
    return debt
