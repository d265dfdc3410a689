"""
Stock mutation tests.

Verifies:
- adjust_stock applies a server-side delta and reports before/after
- Flooring at zero (and refusal without flooring)
- Changes are not committed by adjust_stock itself
- Tenant scoping of catalog reads
"""

import pytest

from backoffice.extensions import db
from backoffice.models import InventoryItem, AuditEvent
from backoffice.services import stock_service
from backoffice.services.stock_service import StockError

from conftest import make_item


class TestGetItem:

    def test_returns_catalog_fields(self, db_session, org_a, item_a):
        item = stock_service.get_item(org_a.id, item_a.id)
        data = item.to_dict()
        assert data["name"] == "Widget"
        assert data["sku"] == "SKU-001"
        assert data["cost_price_cents"] == 1000
        assert data["current_stock"] == 10

    def test_scoped_to_tenant(self, db_session, org_a, org_b, item_a):
        assert stock_service.get_item(org_b.id, item_a.id) is None
        assert stock_service.get_item(org_a.id, 424242) is None


class TestAdjustStock:

    def test_positive_delta(self, db_session, org_a, item_a):
        change = stock_service.adjust_stock(item_a.id, 5, org_id=org_a.id)
        db_session.commit()

        assert (change.before, change.after, change.delta_applied) == (10, 15, 5)
        assert db_session.get(InventoryItem, item_a.id).current_stock == 15

    def test_negative_delta_floored(self, db_session, org_a, item_a):
        change = stock_service.adjust_stock(item_a.id, -25, org_id=org_a.id)
        db_session.commit()

        assert change.after == 0
        assert change.delta_applied == -10

    def test_without_floor_refuses_negative(self, db_session, org_a, item_a):
        with pytest.raises(StockError):
            stock_service.adjust_stock(item_a.id, -11, org_id=org_a.id, floor_at_zero=False)

        change = stock_service.adjust_stock(item_a.id, -10, org_id=org_a.id, floor_at_zero=False)
        assert change.after == 0

    def test_zero_delta_is_a_no_op(self, db_session, org_a, item_a):
        change = stock_service.adjust_stock(item_a.id, 0, org_id=org_a.id)
        assert change.delta_applied == 0
        assert db_session.query(AuditEvent).count() == 0

    def test_missing_item(self, db_session, org_a):
        with pytest.raises(StockError):
            stock_service.adjust_stock(999, 1, org_id=org_a.id)

    def test_other_tenant_item(self, db_session, org_a, org_b):
        foreign = make_item(db_session, org_b, sku="B-1")
        with pytest.raises(StockError):
            stock_service.adjust_stock(foreign.id, 1, org_id=org_a.id)

    def test_sequential_deltas_compose(self, db_session, org_a, item_a):
        stock_service.adjust_stock(item_a.id, 3, org_id=org_a.id)
        stock_service.adjust_stock(item_a.id, -2, org_id=org_a.id)
        stock_service.adjust_stock(item_a.id, 4, org_id=org_a.id)
        db_session.commit()
        assert db_session.get(InventoryItem, item_a.id).current_stock == 15

    def test_rollback_discards_change(self, db_session, org_a, item_a):
        stock_service.adjust_stock(item_a.id, 7, org_id=org_a.id)
        db_session.rollback()
        assert db.session.get(InventoryItem, item_a.id, populate_existing=True).current_stock == 10

    def test_bumps_version_and_audits(self, db_session, org_a, item_a):
        version = item_a.version_id
        stock_service.adjust_stock(item_a.id, 2, org_id=org_a.id, actor_user_id=None, note="manual")
        db_session.commit()

        assert db_session.get(InventoryItem, item_a.id).version_id == version + 1
        event = db_session.query(AuditEvent).filter_by(event_type="stock.adjusted").one()
        assert event.inventory_item_id == item_a.id
        assert event.to_dict()["payload"]["delta_applied"] == 2
