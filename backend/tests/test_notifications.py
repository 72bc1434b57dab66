# Overview: Pytest coverage for notification recording, push delivery and isolation from ledger failures.

import httpx
import pytest

from shopledger.errors import NotFoundError
from shopledger.models import DailyEntry, InventoryItem, Notification, PushToken, Sale
from shopledger.services import notification_service, sales_service
from shopledger.services.sales_service import record_sale


EXPO_TOKEN = "ExponentPushToken[abc123]"


class TestEmittedNotifications:

    def test_cash_sale_records_payment_alert(self, db_session, business_a, user_a, item_a):
        outcome = record_sale(business_a.id, item_a.id, 2, "cash", user_id=user_a.id)

        note = db_session.query(Notification).filter_by(type="payment_alert").one()
        assert note.user_id == user_a.id
        assert note.business_id == business_a.id
        assert note.title == "Sale Recorded"
        assert note.entity_type == "sale"
        assert note.entity_id == str(outcome.sale.id)
        assert note.payload["amount_cents"] == 20000
        assert note.is_read is False

    def test_merge_is_reported_as_update(self, db_session, business_a, user_a, item_a):
        record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)
        record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)

        titles = [n.title for n in db_session.query(Notification).order_by(Notification.id)]
        assert titles == ["Sale Recorded", "Sale Updated"]

    def test_debt_sale_records_debt_reminder(self, db_session, business_a, user_a, item_a, customer_a):
        record_sale(business_a.id, item_a.id, 1, "debt", customer_a, user_id=user_a.id)
        record_sale(business_a.id, item_a.id, 1, "debt", customer_a, user_id=user_a.id)

        titles = [
            n.title for n in
            db_session.query(Notification).filter_by(type="debt_reminder").order_by(Notification.id)
        ]
        assert titles == ["New Customer Debt Created", "Existing Customer Debt Updated"]

    def test_low_stock_alert(self, db_session, business_a, user_a, item_a):
        record_sale(business_a.id, item_a.id, 15, "cash", user_id=user_a.id)

        alert = db_session.query(Notification).filter_by(title="Low Stock").one()
        assert alert.type == "stock_alert"
        assert alert.payload["quantity_available"] == 5

    def test_no_recipient_no_notification(self, db_session, business_a, item_a):
        record_sale(business_a.id, item_a.id, 1, "cash")

        assert db_session.query(Notification).count() == 0


class TestFailureIsolation:

    def test_broken_notification_store_does_not_fail_sale(
        self, db_session, business_a, user_a, item_a, monkeypatch
    ):
        def explode(**kwargs):
            raise RuntimeError("notification table unavailable")

        monkeypatch.setattr(notification_service, "Notification", explode)

        outcome = record_sale(business_a.id, item_a.id, 2, "cash", user_id=user_a.id)

        assert db_session.get(Sale, outcome.sale.id).quantity_sold == 2
        assert db_session.query(DailyEntry).one().cash_total_cents == 20000

    def test_error_building_sale_notification_does_not_fail_sale(
        self, db_session, business_a, user_a, item_a, monkeypatch
    ):
        def explode(item):
            raise RuntimeError("stale item state")

        monkeypatch.setattr(sales_service.inventory_service, "is_low_stock", explode)

        outcome = record_sale(business_a.id, item_a.id, 3, "cash", user_id=user_a.id)

        assert outcome.quantity == 3
        assert db_session.get(Sale, outcome.sale.id).quantity_sold == 3
        assert db_session.get(InventoryItem, item_a.id).quantity_available == 17
        assert db_session.query(DailyEntry).one().cash_total_cents == 30000

    def test_push_failure_does_not_fail_sale(self, db_session, business_a, user_a, item_a, push_client):
        notification_service.register_push_token(user_a.id, EXPO_TOKEN, "device-1")
        push_client.error = httpx.ConnectError("expo unreachable")

        outcome = record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)

        assert db_session.get(Sale, outcome.sale.id) is not None
        assert db_session.query(Notification).count() == 1


class TestPushDelivery:

    def test_push_sent_to_registered_expo_tokens(self, db_session, business_a, user_a, item_a, push_client):
        notification_service.register_push_token(user_a.id, EXPO_TOKEN, "device-1")
        notification_service.register_push_token(user_a.id, "not-an-expo-token", "device-2")

        record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)

        assert len(push_client.batches) == 1
        [message] = push_client.batches[0]
        assert message["to"] == EXPO_TOKEN
        assert message["title"] == "Sale Recorded"
        assert message["data"]["type"] == "payment_alert"

    def test_push_disabled_sends_nothing(self, app, db_session, business_a, user_a, item_a, push_client):
        app.config['PUSH_NOTIFICATIONS_ENABLED'] = False
        notification_service.register_push_token(user_a.id, EXPO_TOKEN, "device-1")

        record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)

        assert push_client.batches == []

    def test_dead_tokens_are_pruned(self, db_session, business_a, user_a, item_a, push_client):
        notification_service.register_push_token(user_a.id, EXPO_TOKEN, "device-1")
        push_client.tickets = [{
            "status": "error",
            "message": "device not registered",
            "details": {"error": "DeviceNotRegistered"},
        }]

        record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)

        assert db_session.query(PushToken).count() == 0

    def test_reregistering_device_replaces_token(self, db_session, user_a, user_b):
        notification_service.register_push_token(user_a.id, EXPO_TOKEN, "device-1")
        token = notification_service.register_push_token(user_b.id, "ExponentPushToken[new]", "device-1")

        assert db_session.query(PushToken).count() == 1
        assert token.user_id == user_b.id
        assert token.push_token == "ExponentPushToken[new]"

        assert notification_service.unregister_push_token("device-1") == 1
        assert db_session.query(PushToken).count() == 0


class TestInbox:

    def test_read_state(self, db_session, business_a, user_a, item_a):
        record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)
        record_sale(business_a.id, item_a.id, 1, "mpesa", user_id=user_a.id)

        assert notification_service.unread_count(business_a.id, user_a.id) == 2

        newest = notification_service.list_notifications(business_a.id, user_a.id)[0]
        read = notification_service.mark_read(business_a.id, user_a.id, newest.id)
        assert read.is_read is True
        assert read.read_at is not None
        assert notification_service.unread_count(business_a.id, user_a.id) == 1

        assert notification_service.mark_all_read(business_a.id, user_a.id) == 1
        assert notification_service.list_notifications(business_a.id, user_a.id, unread_only=True) == []

    def test_other_users_notifications_are_hidden(self, db_session, business_a, user_a, user_b, item_a):
        record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)
        note = db_session.query(Notification).one()

        with pytest.raises(NotFoundError):
            notification_service.mark_read(business_a.id, user_b.id, note.id)
        with pytest.raises(NotFoundError):
            notification_service.delete_notification(business_a.id, user_b.id, note.id)

        notification_service.delete_notification(business_a.id, user_a.id, note.id)
        assert db_session.query(Notification).count() == 0
