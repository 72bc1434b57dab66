# Overview: Pytest coverage for the HTTP API (auth, inventory, sales, daily entries, customers, notifications).

import pytest

from conftest import auth_headers, get_auth_token


@pytest.fixture
def headers_a(client, user_a):
    return auth_headers(get_auth_token(client, "user_a"))


class TestAuthRoutes:

    def test_health(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json['status'] == 'healthy'

    def test_login_requires_fields(self, client, db_session):
        response = client.post('/api/auth/login', json={'username': 'user_a'})
        assert response.status_code == 400

    def test_login_rejects_bad_password(self, client, user_a):
        response = client.post('/api/auth/login', json={'username': 'user_a', 'password': 'nope'})
        assert response.status_code == 401

    def test_me(self, client, headers_a, business_a):
        response = client.get('/api/auth/me', headers=headers_a)
        assert response.status_code == 200
        assert response.json['user']['username'] == 'user_a'
        assert response.json['business']['id'] == business_a.id

    def test_protected_route_requires_token(self, client, db_session):
        assert client.get('/api/inventory').status_code == 401
        assert client.get('/api/inventory', headers=auth_headers('bogus')).status_code == 401

    def test_logout_revokes_token(self, client, headers_a):
        assert client.post('/api/auth/logout', headers=headers_a).status_code == 200
        assert client.get('/api/auth/me', headers=headers_a).status_code == 401


class TestInventoryRoutes:

    def test_create_and_list(self, client, headers_a):
        response = client.post('/api/inventory', headers=headers_a, json={
            'name': 'Milk 500ml',
            'cost_price_cents': 5000,
            'retail_price_cents': 6000,
            'quantity_available': 24,
        })
        assert response.status_code == 201
        assert response.json['item']['name'] == 'milk 500ml'

        listed = client.get('/api/inventory', headers=headers_a)
        assert listed.json['count'] == 1

    def test_duplicate_is_conflict(self, client, headers_a, item_a):
        response = client.post('/api/inventory', headers=headers_a, json={
            'name': ' SUGAR 1kg',
            'cost_price_cents': 1,
            'retail_price_cents': 2,
            'quantity_available': 1,
        })
        assert response.status_code == 409
        assert response.json['code'] == 'DUPLICATE_ITEM'

    def test_unknown_field_rejected(self, client, headers_a):
        response = client.post('/api/inventory', headers=headers_a, json={
            'name': 'x', 'cost_price_cents': 1, 'retail_price_cents': 2,
            'quantity_available': 1, 'business_id': 99,
        })
        assert response.status_code == 400

    def test_foreign_item_is_404(self, client, headers_a, item_b):
        response = client.get(f'/api/inventory/{item_b.id}', headers=headers_a)
        assert response.status_code == 404
        assert response.json['code'] == 'ITEM_NOT_FOUND'

    def test_restock(self, client, headers_a, item_a):
        response = client.post(f'/api/inventory/{item_a.id}/restock', headers=headers_a, json={'quantity': 4})
        assert response.status_code == 200
        assert response.json['item']['quantity_available'] == 24


class TestSalesFlow:

    def test_record_merge_decrement_delete(self, client, headers_a, item_a):
        first = client.post('/api/sales', headers=headers_a, json={
            'inventory_id': item_a.id, 'quantity': 2, 'payment_method': 'cash',
        })
        assert first.status_code == 201
        assert first.json['merged'] is False
        assert first.json['entry']['cash_total_cents'] == 20000
        sale_id = first.json['sale_id']

        second = client.post('/api/sales', headers=headers_a, json={
            'inventory_id': item_a.id, 'quantity': 1, 'payment_method': 'cash',
        })
        assert second.status_code == 200
        assert second.json['merged'] is True
        assert second.json['sale']['quantity_sold'] == 3

        dec = client.post(f'/api/sales/{sale_id}/decrement', headers=headers_a, json={'quantity': 1})
        assert dec.status_code == 200
        assert dec.json['sale']['quantity_sold'] == 2
        assert dec.json['entry']['sales_total_cents'] == 20000

        deleted = client.delete(f'/api/sales/{sale_id}', headers=headers_a)
        assert deleted.status_code == 200
        assert deleted.json['removed'] is True
        assert deleted.json['entry']['sales_total_cents'] == 0

        assert client.get(f'/api/sales/{sale_id}', headers=headers_a).status_code == 404

    def test_error_body_shape(self, client, headers_a, item_a):
        response = client.post('/api/sales', headers=headers_a, json={
            'inventory_id': item_a.id, 'quantity': 500, 'payment_method': 'mpesa',
        })
        assert response.status_code == 400
        assert response.json['code'] == 'INSUFFICIENT_STOCK'
        assert response.json['details']['quantity_available'] == 20
        assert 'error' in response.json

    def test_debt_without_customer(self, client, headers_a, item_a):
        response = client.post('/api/sales', headers=headers_a, json={
            'inventory_id': item_a.id, 'quantity': 1, 'payment_method': 'debt',
        })
        assert response.status_code == 400
        assert response.json['code'] == 'MISSING_CUSTOMER'

    def test_user_without_business_is_forbidden(self, client, db_session, password_hash, item_a):
        from shopledger.models import User

        db_session.add(User(username='drifter', email='drifter@shop.local', password_hash=password_hash))
        db_session.commit()
        headers = auth_headers(get_auth_token(client, 'drifter'))

        response = client.post('/api/sales', headers=headers, json={
            'inventory_id': item_a.id, 'quantity': 1, 'payment_method': 'cash',
        })
        assert response.status_code == 403
        assert response.json['code'] == 'NO_ACTIVE_BUSINESS'


class TestDailyEntryRoutes:

    def test_close_reopen_cycle(self, client, headers_a, item_a):
        started = client.post('/api/daily-entries/start', headers=headers_a)
        assert started.status_code == 200
        entry_id = started.json['entry']['id']

        client.post('/api/sales', headers=headers_a, json={
            'inventory_id': item_a.id, 'quantity': 1, 'payment_method': 'mpesa',
        })

        closed = client.post(f'/api/daily-entries/{entry_id}/close', headers=headers_a)
        assert closed.status_code == 200
        assert closed.json['entry']['closed'] is True
        assert closed.json['entry']['mpesa_total_cents'] == 10000

        again = client.post(f'/api/daily-entries/{entry_id}/close', headers=headers_a)
        assert again.status_code == 409
        assert again.json['code'] == 'ALREADY_CLOSED'

        blocked = client.post('/api/sales', headers=headers_a, json={
            'inventory_id': item_a.id, 'quantity': 1, 'payment_method': 'cash',
        })
        assert blocked.status_code == 409
        assert blocked.json['code'] == 'DAY_CLOSED'

        reopened = client.post(f'/api/daily-entries/{entry_id}/reopen', headers=headers_a)
        assert reopened.status_code == 200
        assert reopened.json['entry']['closed_at'] is None

        sales = client.get(f'/api/daily-entries/{entry_id}/sales', headers=headers_a)
        assert len(sales.json['sales']) == 1

        report = client.post(f'/api/daily-entries/{entry_id}/reconcile', headers=headers_a, json={})
        assert report.status_code == 200
        assert report.json['drift'] == {}

    def test_today_is_null_before_first_sale(self, client, headers_a):
        response = client.get('/api/daily-entries/today', headers=headers_a)
        assert response.status_code == 200
        assert response.json['entry'] is None


class TestCustomerRoutes:

    def test_debt_and_payment(self, client, headers_a, item_a):
        created = client.post('/api/customers', headers=headers_a, json={
            'full_name': 'Njeri Mwangi', 'phone_number': '0722000333',
        })
        assert created.status_code == 201
        customer_id = created.json['customer']['id']

        sale = client.post('/api/sales', headers=headers_a, json={
            'inventory_id': item_a.id, 'quantity': 2,
            'payment_method': 'debt', 'customer_id': customer_id,
        })
        assert sale.status_code == 201
        assert sale.json['debt']['remaining_balance_cents'] == 20000

        overpaid = client.post(f'/api/customers/{customer_id}/payments', headers=headers_a,
                               json={'amount_cents': 50000})
        assert overpaid.status_code == 400
        assert overpaid.json['code'] == 'OVERPAYMENT'

        paid = client.post(f'/api/customers/{customer_id}/payments', headers=headers_a,
                           json={'amount_cents': 20000})
        assert paid.status_code == 200
        assert paid.json['debt']['status'] == 'paid'
        assert len(paid.json['debt']['payments']) == 1

        detail = client.get(f'/api/customers/{customer_id}', headers=headers_a)
        assert detail.json['customer']['balance_cents'] == 0
        assert detail.json['pending_debt'] is None


class TestNotificationRoutes:

    def test_inbox(self, client, headers_a, item_a):
        client.post('/api/sales', headers=headers_a, json={
            'inventory_id': item_a.id, 'quantity': 1, 'payment_method': 'cash',
        })

        count = client.get('/api/notifications/unread-count', headers=headers_a)
        assert count.json['unread'] == 1

        listed = client.get('/api/notifications', headers=headers_a)
        note_id = listed.json['notifications'][0]['id']

        assert client.post(f'/api/notifications/{note_id}/read', headers=headers_a).status_code == 200
        assert client.get('/api/notifications/unread-count', headers=headers_a).json['unread'] == 0

    def test_push_token_registration(self, client, headers_a):
        response = client.post('/api/notifications/push-tokens', headers=headers_a, json={
            'push_token': 'ExponentPushToken[xyz]', 'device_id': 'pixel-7',
        })
        assert response.status_code == 201

        missing = client.post('/api/notifications/push-tokens', headers=headers_a, json={'device_id': 'x'})
        assert missing.status_code == 400

        removed = client.delete('/api/notifications/push-tokens/pixel-7', headers=headers_a)
        assert removed.json['removed'] == 1
