"""
Commit-time change notification tests.

Verifies:
- One signal per tenant after commit, carrying the changed table names
- Nothing is sent for rolled back work
- Bulk updates reported through mark_changed()
- subscribe() filters by tenant and table
"""

import pytest

from backoffice.models import Expense
from backoffice.notifications import table_changed, mark_changed, subscribe, unsubscribe
from backoffice.time_utils import utcnow


@pytest.fixture
def received():
    calls = []

    def _receiver(sender, tables=frozenset(), **extra):
        calls.append((sender, tables))

    table_changed.connect(_receiver, weak=False)
    yield calls
    table_changed.disconnect(_receiver)


def _expense(org_id):
    now = utcnow()
    return Expense(org_id=org_id, category="Rent", vendor_name="Landlord",
                   amount_cents=100, date_incurred=now.date(), created_at=now)


class TestTableChanged:

    def test_sent_after_commit(self, db_session, org_a, received):
        db_session.add(_expense(org_a.id))
        db_session.flush()
        assert received == []

        db_session.commit()

        assert received == [(org_a.id, frozenset({"expenses"}))]

    def test_not_sent_on_rollback(self, db_session, org_a, received):
        db_session.add(_expense(org_a.id))
        db_session.flush()
        db_session.rollback()
        db_session.commit()

        assert received == []

    def test_one_signal_per_tenant(self, db_session, org_a, org_b, received):
        db_session.add(_expense(org_a.id))
        db_session.add(_expense(org_b.id))
        db_session.commit()

        assert sorted(received) == sorted([
            (org_a.id, frozenset({"expenses"})),
            (org_b.id, frozenset({"expenses"})),
        ])

    def test_mark_changed(self, db_session, org_a, received):
        mark_changed("inventory_items", org_a.id)
        db_session.commit()

        assert received == [(org_a.id, frozenset({"inventory_items"}))]


class TestSubscribe:

    def test_filters_tenant_and_tables(self, db_session, org_a, org_b):
        hits = []
        receiver = subscribe({"expenses", "payment_receipts"}, lambda org_id, tables: hits.append((org_id, tables)),
                             org_id=org_a.id)
        try:
            db_session.add(_expense(org_b.id))
            db_session.commit()
            mark_changed("inventory_items", org_a.id)
            db_session.commit()
            assert hits == []

            db_session.add(_expense(org_a.id))
            db_session.commit()
            assert hits == [(org_a.id, frozenset({"expenses"}))]
        finally:
            unsubscribe(receiver)

    def test_unsubscribe_stops_delivery(self, db_session, org_a):
        hits = []
        receiver = subscribe({"expenses"}, lambda org_id, tables: hits.append(tables))
        unsubscribe(receiver)

        db_session.add(_expense(org_a.id))
        db_session.commit()

        assert hits == []
