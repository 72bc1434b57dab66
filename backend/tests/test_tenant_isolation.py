# Overview: Pytest coverage for business (tenant) isolation behavior.

"""
Multi-Business Isolation Tests

SECURITY TESTS: Prove that cross-business access is denied for ledger data.

Two businesses each get a user, an item and a customer; then we verify that:
1. Business A cannot read or mutate Business B's items, sales, entries or debts
2. Foreign rows are reported as "not found" (existence is not revealed)
3. Cross-business access attempts are logged
4. Sessions carry the business captured at login
"""

import logging

import pytest

from shopledger.errors import (
    CustomerNotFoundError,
    EntryNotFoundError,
    ItemNotFoundError,
    NoActiveBusinessError,
    SaleNotFoundError,
)
from shopledger.models import DailyEntry, InventoryItem, Sale
from shopledger.services import daily_entry_service, inventory_service
from shopledger.services.sales_service import decrement_sale, delete_sale, get_sale, record_sale
from shopledger.services.session_service import create_session, validate_session
from shopledger.services.tenant_service import owned_or_none, require_active_business


class TestTenantServiceHelpers:

    def test_require_active_business(self, db_session, business_a):
        assert require_active_business(business_a.id).id == business_a.id

    def test_missing_or_inactive_business(self, db_session, business_a):
        with pytest.raises(NoActiveBusinessError):
            require_active_business(None)
        with pytest.raises(NoActiveBusinessError):
            require_active_business(99999)

        business_a.is_active = False
        db_session.commit()
        with pytest.raises(NoActiveBusinessError):
            require_active_business(business_a.id)

    def test_cross_business_access_is_logged(self, db_session, business_a, item_b, caplog):
        with caplog.at_level(logging.WARNING):
            assert owned_or_none(item_b, business_a.id, kind="inventory_item") is None

        assert "Cross-business access denied" in caplog.text


class TestSessionBusinessContext:

    def test_session_captures_business_id(self, db_session, user_a, business_a):
        session, token = create_session(user_id=user_a.id)

        assert session.business_id == business_a.id

        context = validate_session(token)
        assert context is not None
        assert context.business_id == business_a.id
        assert context.user.id == user_a.id

    def test_session_business_is_fixed_at_login(self, db_session, user_a, business_a, business_b):
        session, token = create_session(user_id=user_a.id)

        user_a.business_id = business_b.id
        db_session.commit()

        context = validate_session(token)
        assert context.business_id == business_a.id

    def test_revoked_session_is_invalid(self, db_session, user_a):
        from shopledger.services.session_service import revoke_token

        session, token = create_session(user_id=user_a.id)
        assert revoke_token(token) is True
        assert validate_session(token) is None


class TestInventoryIsolation:

    def test_foreign_item_is_not_found(self, db_session, business_a, item_b):
        with pytest.raises(ItemNotFoundError):
            inventory_service.get_item(business_a.id, item_b.id)

    def test_list_only_returns_own_items(self, db_session, business_a, business_b, item_a, item_b):
        assert [i.id for i in inventory_service.list_items(business_a.id)] == [item_a.id]
        assert [i.id for i in inventory_service.list_items(business_b.id)] == [item_b.id]

    def test_cannot_restock_or_delete_foreign_item(self, db_session, business_a, item_b):
        with pytest.raises(ItemNotFoundError):
            inventory_service.restock_item(business_a.id, item_b.id, 5)
        with pytest.raises(ItemNotFoundError):
            inventory_service.delete_item(business_a.id, item_b.id)

        assert db_session.get(InventoryItem, item_b.id).quantity_available == 10

    def test_same_item_name_in_two_businesses(self, db_session, business_a, business_b):
        a = inventory_service.add_item(business_a.id, {"name": "Bread", "retail_price_cents": 6000})
        b = inventory_service.add_item(business_b.id, {"name": "bread", "retail_price_cents": 6500})

        assert a.name == b.name == "bread"
        assert a.id != b.id


class TestSaleIsolation:

    def test_cannot_sell_foreign_item(self, db_session, business_a, user_a, item_b):
        with pytest.raises(ItemNotFoundError):
            record_sale(business_a.id, item_b.id, 1, "cash", user_id=user_a.id)

        assert db_session.get(InventoryItem, item_b.id).quantity_available == 10
        assert db_session.query(DailyEntry).count() == 0

    def test_cannot_debit_foreign_customer(self, db_session, business_a, user_a, item_a, customer_b):
        with pytest.raises(CustomerNotFoundError):
            record_sale(business_a.id, item_a.id, 1, "debt", customer_b, user_id=user_a.id)

    def test_cannot_touch_foreign_sale(self, db_session, business_a, business_b, user_b, item_b):
        outcome = record_sale(business_b.id, item_b.id, 2, "cash", user_id=user_b.id)
        sale_id = outcome.sale.id

        with pytest.raises(SaleNotFoundError):
            get_sale(business_a.id, sale_id)
        with pytest.raises(SaleNotFoundError):
            delete_sale(business_a.id, sale_id)
        with pytest.raises(SaleNotFoundError):
            decrement_sale(business_a.id, sale_id, 1)

        assert db_session.get(Sale, sale_id).quantity_sold == 2

    def test_cannot_close_foreign_entry(self, db_session, business_a, business_b, user_b):
        entry = daily_entry_service.start_new_day(business_b.id, user_id=user_b.id)

        with pytest.raises(EntryNotFoundError):
            daily_entry_service.close_entry(business_a.id, entry.id)
        with pytest.raises(EntryNotFoundError):
            daily_entry_service.list_sales_for_entry(business_a.id, entry.id)

        assert db_session.get(DailyEntry, entry.id).closed is False
