# Overview: Pytest coverage for the inventory catalog and stock guard.

import pytest

from shopledger.errors import DuplicateItemError, InvalidQuantityError, ValidationError
from shopledger.models import InventoryItem, Notification, Sale
from shopledger.services import inventory_service
from shopledger.services.sales_service import record_sale
from shopledger.validation import enforce_rules_inventory_item


class TestAddItem:

    def test_name_is_normalized_and_defaults_applied(self, db_session, business_a, user_a):
        item = inventory_service.add_item(
            business_a.id,
            {"name": "  Sugar 2KG ", "cost_price_cents": 17000, "retail_price_cents": 20000, "quantity_available": 12},
            user_id=user_a.id,
        )

        assert item.name == "sugar 2kg"
        assert item.unit == "pcs"
        assert item.category == "Uncategorized"
        assert item.unit_profit_cents == 3000

        note = db_session.query(Notification).one()
        assert note.title == "New Inventory Item Added"
        assert note.type == "stock_alert"

    def test_duplicate_name_rejected_case_insensitively(self, db_session, business_a, item_a):
        with pytest.raises(DuplicateItemError):
            inventory_service.add_item(business_a.id, {"name": "SUGAR 1KG"})

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            enforce_rules_inventory_item({"retail_price_cents": -1})


class TestUpdateAndRestock:

    def test_update_price(self, db_session, business_a, item_a):
        item = inventory_service.update_item(business_a.id, item_a.id, {"retail_price_cents": 11000})
        assert item.retail_price_cents == 11000

    def test_rename_onto_existing_name_rejected(self, db_session, business_a, item_a):
        from conftest import make_item

        other = make_item(db_session, business_a, name="salt")
        with pytest.raises(DuplicateItemError):
            inventory_service.update_item(business_a.id, other.id, {"name": "Sugar 1kg"})

    def test_restock(self, db_session, business_a, user_a, item_a):
        item = inventory_service.restock_item(business_a.id, item_a.id, 5, user_id=user_a.id)
        assert item.quantity_available == 25

        with pytest.raises(InvalidQuantityError):
            inventory_service.restock_item(business_a.id, item_a.id, 0)


class TestDeleteItem:

    def test_sales_keep_name_snapshot(self, db_session, business_a, user_a, item_a):
        outcome = record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)
        sale_id = outcome.sale.id
        item_id = item_a.id

        inventory_service.delete_item(business_a.id, item_id)

        assert db_session.get(InventoryItem, item_id) is None
        sale = db_session.get(Sale, sale_id)
        assert sale.inventory_item_id is None
        assert sale.item_name == "sugar 1kg"
