# Overview: Pytest coverage for the `flask days` commands (close, reopen, reconcile).

from shopledger.models import DailyEntry
from shopledger.services.sales_service import record_sale


def _days(app, *args):
    runner = app.test_cli_runner()
    return runner.invoke(args=["days", *[str(a) for a in args]])


class TestDaysCommands:

    def test_close_today_then_reopen(self, app, db_session, business_a, user_a, item_a):
        outcome = record_sale(business_a.id, item_a.id, 3, "cash", user_id=user_a.id)
        entry_id = outcome.entry.id

        result = _days(app, "close", "--business-id", business_a.id)

        assert result.exit_code == 0
        assert f"PASS Closed entry {entry_id}" in result.output
        assert "cash_total_cents" in result.output
        assert "300.00" in result.output
        db_session.expire_all()
        assert db_session.get(DailyEntry, entry_id).closed is True

        again = _days(app, "close", "--business-id", business_a.id, "--entry-id", entry_id)
        assert "FAIL Entry already closed." in again.output

        reopened = _days(app, "reopen", "--business-id", business_a.id, "--entry-id", entry_id)
        assert f"PASS Reopened entry {entry_id}" in reopened.output
        db_session.expire_all()
        assert db_session.get(DailyEntry, entry_id).closed is False

    def test_close_without_entry_for_today(self, app, db_session, business_a):
        result = _days(app, "close", "--business-id", business_a.id)

        assert result.exit_code == 0
        assert "FAIL No entry for today" in result.output

    def test_reconcile_reports_and_applies_drift(self, app, db_session, business_a, user_a, item_a):
        outcome = record_sale(business_a.id, item_a.id, 2, "mpesa", user_id=user_a.id)
        entry_id = outcome.entry.id

        clean = _days(app, "reconcile", "--business-id", business_a.id, "--entry-id", entry_id)
        assert f"PASS Entry {entry_id} totals match its sales" in clean.output

        entry = db_session.get(DailyEntry, entry_id)
        entry.mpesa_total_cents += 500
        db_session.commit()

        report = _days(app, "reconcile", "--business-id", business_a.id, "--entry-id", entry_id)
        assert f"WARN Entry {entry_id} drifted:" in report.output
        assert "mpesa_total_cents" in report.output
        assert "(+500)" in report.output
        db_session.expire_all()
        assert db_session.get(DailyEntry, entry_id).mpesa_total_cents == 20500

        applied = _days(app, "reconcile", "--business-id", business_a.id, "--entry-id", entry_id, "--apply")
        assert "PASS Stored totals overwritten" in applied.output
        db_session.expire_all()
        assert db_session.get(DailyEntry, entry_id).mpesa_total_cents == 20000

    def test_reconcile_foreign_entry_fails(self, app, db_session, business_a, business_b, user_a, item_a):
        outcome = record_sale(business_a.id, item_a.id, 1, "cash", user_id=user_a.id)

        result = _days(app, "reconcile", "--business-id", business_b.id, "--entry-id", outcome.entry.id)

        assert "FAIL Daily entry not found." in result.output
