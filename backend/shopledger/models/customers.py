from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


DEBT_PENDING = "pending"
DEBT_PAID = "paid"
VALID_DEBT_STATUSES = {DEBT_PENDING, DEBT_PAID}

DEBT_ITEM_CHARGE = "charge"
DEBT_ITEM_REVERSAL = "reversal"


class Customer(db.Model):
    """
    Customer identity, shared across businesses.

    Per-business state (cached balance, join date) lives on BusinessCustomer.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    phone_number = db.Column(db.String(32), nullable=False, index=True)
    email_address = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone_number": self.phone_number,
            "email_address": self.email_address,
            "created_at": to_utc_z(self.created_at),
        }


class BusinessCustomer(db.Model):
    """
    Link between a business and a customer.

    `balance_cents` mirrors the customer's outstanding debt at this business.
    It moves in lockstep with Debt balances: every debt charge, reversal and
    payment updates both inside the same transaction.
    """
    __tablename__ = "business_customers"
    __table_args__ = (
        db.UniqueConstraint("business_id", "customer_id", name="uq_business_customers_pair"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("business_links", lazy=True))
    business = db.relationship("Business", backref=db.backref("customer_links", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        data = self.customer.to_dict() if self.customer else {"id": self.customer_id}
        data.update({
            "business_id": self.business_id,
            "balance_cents": self.balance_cents,
            "joined_at": to_utc_z(self.joined_at),
        })
        return data


class Debt(db.Model):
    """
    Outstanding "buy now pay later" balance for one customer at one business.

    At most one row per (business_id, customer_id) is `pending`; later debt
    sales accumulate into it. The settlement path (DebtPayment) moves
    amount_paid up and remaining_balance/balance down together.

    INVARIANT: remaining_balance_cents == amount_owed_cents - amount_paid_cents,
    and balance_cents == remaining_balance_cents.

    sale_id is a historical reference to the sale that opened the debt; the
    sale row may later be deleted, so it is not a foreign key.
    """
    __tablename__ = "debts"
    __table_args__ = (
        db.Index(
            "uq_debts_business_customer_pending",
            "business_id", "customer_id",
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
        db.Index("ix_debts_business_customer_status", "business_id", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, nullable=True, index=True)

    debt_date = db.Column(db.DateTime(timezone=True), nullable=False)

    amount_owed_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    remaining_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=DEBT_PENDING, index=True)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("debts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "business_id": self.business_id,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "debt_date": to_utc_z(self.debt_date),
            "amount_owed_cents": self.amount_owed_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "remaining_balance_cents": self.remaining_balance_cents,
            "balance_cents": self.balance_cents,
            "status": self.status,
            "settled_at": to_utc_z(self.settled_at) if self.settled_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class DebtItem(db.Model):
    """
    Append-only line under a Debt, one per debt-contributing sale event.

    Reversals (sale deleted or decremented) are recorded as new rows with
    kind='reversal' and negative quantity/total; existing rows are never
    updated or deleted.
    """
    __tablename__ = "debt_items"
    __table_args__ = (
        db.Index("ix_debt_items_sale", "sale_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    debt_id = db.Column(db.Integer, db.ForeignKey("debts.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, nullable=True)
    inventory_item_id = db.Column(db.Integer, nullable=True)

    kind = db.Column(db.String(16), nullable=False, default=DEBT_ITEM_CHARGE)
    name = db.Column(db.String(255), nullable=False)
    quantity_taken = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    debt = db.relationship(
        "Debt",
        backref=db.backref("items", lazy=True, order_by="DebtItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debt_id": self.debt_id,
            "sale_id": self.sale_id,
            "inventory_item_id": self.inventory_item_id,
            "kind": self.kind,
            "name": self.name,
            "quantity_taken": self.quantity_taken,
            "price_cents": self.price_cents,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
        }


class DebtPayment(db.Model):
    """Append-only record of money received against a Debt."""
    __tablename__ = "debt_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    debt_id = db.Column(db.Integer, db.ForeignKey("debts.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=True)
    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    debt = db.relationship(
        "Debt",
        backref=db.backref("payments", lazy=True, order_by="DebtPayment.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debt_id": self.debt_id,
            "business_id": self.business_id,
            "customer_id": self.customer_id,
            "amount_cents": self.amount_cents,
            "note": self.note,
            "recorded_by_user_id": self.recorded_by_user_id,
            "paid_at": to_utc_z(self.paid_at),
        }
