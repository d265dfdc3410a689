"""
CLI command tests (flask adjustments / cashbook / maintenance).
"""

from datetime import timedelta

import pytest

from backoffice.models import SecurityEvent
from backoffice.services import adjustment_service, cash_book_service
from backoffice.time_utils import utcnow


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestAdjustmentCommands:

    def test_pending_lists_open_adjustments(self, runner, db_session, org_a, cashier_user, item_a):
        adjustment_service.create_adjustment(
            org_id=org_a.id, user_id=cashier_user.id, inventory_item_id=item_a.id,
            adjustment_type="damage", quantity=2, reason="water_damage",
        )

        result = runner.invoke(args=["adjustments", "pending", "--org-id", str(org_a.id)])

        assert result.exit_code == 0
        assert "Widget (SKU-001)" in result.output
        assert "Water Damage" in result.output
        assert "20.00" in result.output

    def test_pending_empty(self, runner, db_session, org_a):
        result = runner.invoke(args=["adjustments", "pending"])
        assert "No pending adjustments." in result.output


class TestCashBookCommands:

    def test_show_csv(self, runner, db_session, org_a):
        expense = cash_book_service.record_expense(org_a.id, {
            "category": "Rent", "vendor_name": "Landlord", "amount_cents": 4000, "date_incurred": "2024-03-01",
        })

        result = runner.invoke(args=[
            "cashbook", "show", "--org-id", str(org_a.id),
            "--start", "2024-03-01", "--end", "2024-03-31", "--csv",
        ])

        assert result.exit_code == 0
        assert f"2024-03-01,Rent: Landlord,{expense.id},,40.00,-40.00" in result.output
        assert ",Totals,,0.00,40.00,-40.00" in result.output

    def test_show_rejects_inverted_window(self, runner, db_session, org_a):
        result = runner.invoke(args=[
            "cashbook", "show", "--org-id", str(org_a.id), "--start", "2024-03-05", "--end", "2024-03-01",
        ])
        assert "FAIL" in result.output

    def test_show_rejects_bad_date(self, runner, db_session, org_a):
        result = runner.invoke(args=["cashbook", "show", "--org-id", str(org_a.id), "--start", "03/01/2024"])
        assert result.exit_code != 0


class TestMaintenance:

    def test_cleanup_keeps_recent_events(self, runner, db_session, org_a):
        db_session.add(SecurityEvent(org_id=org_a.id, event_type="LOGIN_FAILED", success=False,
                                     occurred_at=utcnow() - timedelta(days=200)))
        db_session.add(SecurityEvent(org_id=org_a.id, event_type="LOGIN_FAILED", success=False,
                                     occurred_at=utcnow()))
        db_session.commit()

        result = runner.invoke(args=["maintenance", "cleanup", "--retention-days", "90"])

        assert result.exit_code == 0
        assert "Deleted 1 security events" in result.output
        assert db_session.query(SecurityEvent).count() == 1
