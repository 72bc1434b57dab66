from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import to_utc_z


class PaymentMethod(str, enum.Enum):
    """
    How a sale was paid.

    CASH and MPESA are settled at the till and count toward sales/profit
    totals. DEBT is "buy now pay later": it is tracked in debts_total and on
    the customer's pending Debt, and is recognized as revenue only on
    settlement.
    """
    CASH = "cash"
    MPESA = "mpesa"
    DEBT = "debt"

    @property
    def is_paid(self) -> bool:
        return self is not PaymentMethod.DEBT

    @classmethod
    def parse(cls, value) -> "PaymentMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"payment_method must be one of: {', '.join(m.value for m in cls)}")


payment_method_type = db.Enum(
    PaymentMethod,
    name="payment_method",
    native_enum=False,
    length=16,
    values_callable=lambda members: [m.value for m in members],
    validate_strings=True,
)


class DailyEntry(db.Model):
    """
    Per-business, per-day cash drawer aggregate.

    Keyed by (business_id, business_date) where business_date is the local
    calendar day in the business timezone. Totals are maintained incrementally
    by every sale mutation and re-derived from Sale rows when the day is closed.

    INVARIANT: sales_total_cents == cash_total_cents + mpesa_total_cents.
    Debt sales only ever move debts_total_cents.

    Never physically deleted; close/reopen toggle the `closed` flag.
    """
    __tablename__ = "daily_entries"
    __table_args__ = (
        db.UniqueConstraint("business_id", "business_date", name="uq_daily_entries_business_date"),
        db.Index("ix_daily_entries_business_closed", "business_id", "closed"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False, index=True)

    # Local midnight of business_date (UTC-naive), kept for range queries
    opened_for = db.Column(db.DateTime(timezone=True), nullable=False)

    closed = db.Column(db.Boolean, nullable=False, default=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Running totals (cents)
    cash_total_cents = db.Column(db.Integer, nullable=False, default=0)
    mpesa_total_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_total_cents = db.Column(db.Integer, nullable=False, default=0)
    debts_total_cents = db.Column(db.Integer, nullable=False, default=0)
    profit_total_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    business = db.relationship("Business", backref=db.backref("daily_entries", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def totals(self) -> dict:
        return {
            "cash_total_cents": self.cash_total_cents,
            "mpesa_total_cents": self.mpesa_total_cents,
            "sales_total_cents": self.sales_total_cents,
            "debts_total_cents": self.debts_total_cents,
            "profit_total_cents": self.profit_total_cents,
        }

    def __repr__(self) -> str:
        return f"<DailyEntry id={self.id} business_id={self.business_id} date={self.business_date} closed={self.closed}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "date": self.business_date.isoformat() if self.business_date else None,
            "opened_for": to_utc_z(self.opened_for),
            "closed": self.closed,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "closed_by_user_id": self.closed_by_user_id,
            **self.totals(),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Sale(db.Model):
    """
    Merged sale row: units of one item sold via one payment method on one day.

    MERGE KEY: (daily_entry_id, inventory_item_id, payment_method) is unique.
    Repeat sales of the same item with the same payment method on the same day
    increment this row instead of inserting a new one.

    inventory_item_id is nulled when the item is deleted; item_name keeps a
    snapshot so the row stays readable.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint(
            "daily_entry_id", "inventory_item_id", "payment_method",
            name="uq_sales_entry_item_method",
        ),
        db.CheckConstraint("quantity_sold >= 0", name="ck_sales_quantity_nonneg"),
        db.Index("ix_sales_business_entry", "business_id", "daily_entry_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    daily_entry_id = db.Column(db.Integer, db.ForeignKey("daily_entries.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    payment_method = db.Column(payment_method_type, nullable=False, index=True)

    quantity_sold = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_profit_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    daily_entry = db.relationship("DailyEntry", backref=db.backref("sales", lazy=True))
    inventory_item = db.relationship("InventoryItem")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "daily_entry_id": self.daily_entry_id,
            "inventory_item_id": self.inventory_item_id,
            "item_name": self.item_name,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "quantity_sold": self.quantity_sold,
            "total_amount_cents": self.total_amount_cents,
            "total_profit_cents": self.total_profit_cents,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
