# Overview: Pytest coverage for customer debts and the settlement path.

import pytest

from shopledger.errors import (
    CustomerNotFoundError,
    DebtNotFoundError,
    OverpaymentError,
    ValidationError,
)
from shopledger.models import BusinessCustomer, DailyEntry, Debt, DebtPayment
from shopledger.services import customer_service
from shopledger.services.sales_service import record_sale


def _link(db_session, business_id, customer_id):
    return db_session.query(BusinessCustomer).filter_by(
        business_id=business_id, customer_id=customer_id
    ).one()


@pytest.fixture
def open_debt(db_session, business_a, user_a, item_a, customer_a):
    """A pending debt of 200.00 (2 units on credit)."""
    outcome = record_sale(business_a.id, item_a.id, 2, "debt", customer_a, user_id=user_a.id)
    return outcome.debt.id


class TestCustomers:

    def test_add_customer_links_with_zero_balance(self, db_session, business_a):
        link = customer_service.add_customer(
            business_a.id, full_name="  Achieng Odhiambo ", phone_number="0711000111"
        )

        assert link.balance_cents == 0
        assert link.customer.full_name == "Achieng Odhiambo"
        assert [c.customer_id for c in customer_service.list_customers(business_a.id)] == [link.customer_id]

    def test_name_and_phone_required(self, db_session, business_a):
        with pytest.raises(ValidationError):
            customer_service.add_customer(business_a.id, full_name="", phone_number="0711")
        with pytest.raises(ValidationError):
            customer_service.add_customer(business_a.id, full_name="Achieng", phone_number=" ")

    def test_customer_of_other_business_is_hidden(self, db_session, business_a, customer_b):
        with pytest.raises(CustomerNotFoundError):
            customer_service.get_business_customer_link(business_a.id, customer_b)


class TestDebtPayments:

    def test_partial_payment(self, db_session, business_a, user_a, customer_a, open_debt):
        debt = customer_service.record_debt_payment(
            business_a.id, customer_a, 5000, note="paid at till", user_id=user_a.id
        )

        assert debt.id == open_debt
        assert debt.amount_paid_cents == 5000
        assert debt.remaining_balance_cents == 15000
        assert debt.balance_cents == 15000
        assert debt.remaining_balance_cents == debt.amount_owed_cents - debt.amount_paid_cents
        assert debt.status == "pending"
        assert _link(db_session, business_a.id, customer_a).balance_cents == 15000

        payment = db_session.query(DebtPayment).filter_by(debt_id=open_debt).one()
        assert payment.amount_cents == 5000
        assert payment.note == "paid at till"

    def test_full_payment_settles_debt(self, db_session, business_a, user_a, item_a, customer_a, open_debt):
        debt = customer_service.record_debt_payment(business_a.id, customer_a, 20000, user_id=user_a.id)

        assert debt.status == "paid"
        assert debt.settled_at is not None
        assert debt.remaining_balance_cents == 0
        assert _link(db_session, business_a.id, customer_a).balance_cents == 0

        # Next credit sale opens a fresh debt
        outcome = record_sale(business_a.id, item_a.id, 1, "debt", customer_a, user_id=user_a.id)
        assert outcome.debt_created is True
        assert outcome.debt.id != open_debt
        assert db_session.query(Debt).filter_by(status="pending").count() == 1

    def test_overpayment_rejected(self, db_session, business_a, user_a, customer_a, open_debt):
        with pytest.raises(OverpaymentError):
            customer_service.record_debt_payment(business_a.id, customer_a, 20001, user_id=user_a.id)

        debt = db_session.get(Debt, open_debt)
        assert debt.amount_paid_cents == 0
        assert db_session.query(DebtPayment).count() == 0

    def test_no_pending_debt(self, db_session, business_a, user_a, customer_a):
        with pytest.raises(DebtNotFoundError):
            customer_service.record_debt_payment(business_a.id, customer_a, 100, user_id=user_a.id)

    @pytest.mark.parametrize("amount", [0, -5, "1.5", None])
    def test_invalid_amount(self, db_session, business_a, customer_a, open_debt, amount):
        with pytest.raises(ValidationError):
            customer_service.record_debt_payment(business_a.id, customer_a, amount)

    def test_payment_does_not_touch_daily_totals(self, db_session, business_a, user_a, customer_a, open_debt):
        before = db_session.query(DailyEntry).one().totals()

        customer_service.record_debt_payment(business_a.id, customer_a, 5000, user_id=user_a.id)

        assert db_session.query(DailyEntry).one().totals() == before

    def test_list_debts_by_status(self, db_session, business_a, user_a, customer_a, open_debt):
        customer_service.record_debt_payment(business_a.id, customer_a, 20000, user_id=user_a.id)

        assert [d.id for d in customer_service.list_debts(business_a.id, customer_a, status="paid")] == [open_debt]
        assert customer_service.list_debts(business_a.id, customer_a, status="pending") == []
        with pytest.raises(ValidationError):
            customer_service.list_debts(business_a.id, customer_a, status="overdue")

    def test_get_debt_is_business_scoped(self, db_session, business_a, business_b, open_debt):
        assert customer_service.get_debt(business_a.id, open_debt).id == open_debt
        with pytest.raises(DebtNotFoundError):
            customer_service.get_debt(business_b.id, open_debt)
