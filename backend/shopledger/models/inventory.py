from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


DEFAULT_UNIT = "pcs"
DEFAULT_CATEGORY = "Uncategorized"


class InventoryItem(db.Model):
    """
    Sellable catalog item with a mutable stock count.

    INVARIANTS:
    - name is stored trimmed + lowercase and is unique per business
    - quantity_available never goes negative after a committed mutation
    - prices are integer cents, >= 0
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("business_id", "name", name="uq_inventory_items_business_name"),
        db.CheckConstraint("quantity_available >= 0", name="ck_inventory_items_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    quantity_available = db.Column(db.Integer, nullable=False, default=0)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    retail_price_cents = db.Column(db.Integer, nullable=False, default=0)
    wholesale_price_cents = db.Column(db.Integer, nullable=True)

    unit = db.Column(db.String(32), nullable=False, default=DEFAULT_UNIT)
    category = db.Column(db.String(128), nullable=False, default=DEFAULT_CATEGORY)
    image_url = db.Column(db.String(1024), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    business = db.relationship("Business", backref=db.backref("inventory_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def unit_profit_cents(self) -> int:
        return self.retail_price_cents - self.cost_price_cents

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} qty={self.quantity_available}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "quantity_available": self.quantity_available,
            "cost_price_cents": self.cost_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "unit": self.unit,
            "category": self.category,
            "image_url": self.image_url,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
