# Overview: Catalog reads and the single atomic stock mutation.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import case, update

from ..extensions import db
from ..models import InventoryItem
from ..notifications import mark_changed
from .audit_service import append_audit_event, CATEGORY_INVENTORY
from .concurrency import lock_for_update
"""
Stock Invariants (authoritative)

- current_stock is only written by adjust_stock(); no caller does
  read-modify-write on it.
- The write is one server-side UPDATE: current_stock = current_stock + delta,
  floored at 0 when floor_at_zero is set. Two concurrent calls therefore
  compose instead of losing an update.
- current_stock >= 0 always holds (CHECK constraint backs the floor).
- adjust_stock() flushes but never commits. The caller owns the transaction,
  so the stock write and whatever state change justified it commit together.
- Every applied change appends a 'stock.adjusted' audit event in the same
  transaction.
"""


class StockError(Exception):
    """Raised when a stock operation cannot be applied."""
    pass


@dataclass(frozen=True)
class StockChange:
    item_id: int
    before: int
    after: int

    @property
    def delta_applied(self) -> int:
        return self.after - self.before

    def to_dict(self) -> dict:
        return {
            "inventory_item_id": self.item_id,
            "stock_before": self.before,
            "stock_after": self.after,
            "delta_applied": self.delta_applied,
        }


def get_item(org_id: int, item_id: int) -> InventoryItem | None:
    """Catalog lookup scoped to the tenant. Returns None when absent."""
    return db.session.query(InventoryItem).filter_by(id=item_id, org_id=org_id).first()


def adjust_stock(
    item_id: int,
    delta: int,
    *,
    org_id: int,
    floor_at_zero: bool = True,
    actor_user_id: int | None = None,
    adjustment_id: int | None = None,
    note: str | None = None,
) -> StockChange:
    """
    Apply a signed stock delta atomically.

    Args:
        item_id: Inventory item to change
        delta: Signed quantity (positive restocks, negative writes down)
        org_id: Tenant the item must belong to
        floor_at_zero: Clamp the result at 0 instead of failing
        actor_user_id: User responsible (audit only)
        adjustment_id: Adjustment that caused the change (audit only)

    Returns:
        StockChange with the before/after values actually observed

    Raises:
        StockError: Item missing, or result would be negative without flooring
    """
    item = lock_for_update(
        db.session.query(InventoryItem).filter_by(id=item_id, org_id=org_id)
    ).populate_existing().first()
    if item is None:
        raise StockError("Inventory item not found")

    before = item.current_stock

    if delta == 0:
        return StockChange(item_id=item_id, before=before, after=before)

    if not floor_at_zero and before + delta < 0:
        raise StockError(
            f"Insufficient stock: {before} on hand, change of {delta} requested"
        )

    raw = InventoryItem.current_stock + delta
    new_value = case((raw < 0, 0), else_=raw) if floor_at_zero else raw

    db.session.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item_id, InventoryItem.org_id == org_id)
        .values(current_stock=new_value, version_id=InventoryItem.version_id + 1)
        .execution_options(synchronize_session=False)
    )

    # Reload so the identity map reflects the server-side value and version.
    item = db.session.get(InventoryItem, item_id, populate_existing=True)
    change = StockChange(item_id=item_id, before=before, after=item.current_stock)

    mark_changed(InventoryItem.__tablename__, org_id)

    append_audit_event(
        org_id=org_id,
        event_type="stock.adjusted",
        event_category=CATEGORY_INVENTORY,
        entity_type="inventory_item",
        entity_id=item_id,
        actor_user_id=actor_user_id,
        adjustment_id=adjustment_id,
        inventory_item_id=item_id,
        note=note,
        payload={
            "requested_delta": delta,
            "stock_before": change.before,
            "stock_after": change.after,
            "delta_applied": change.delta_applied,
        },
    )

    return change
