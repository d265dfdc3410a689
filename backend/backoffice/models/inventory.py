from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

class InventoryItem(db.Model):
    """
    Catalog item: the stocked unit that adjustments point at.

    The catalog itself (editing names, prices, variants) is managed elsewhere.
    This subsystem only reads cost_price_cents / current_stock and writes
    current_stock through stock_service.adjust_stock().

    STOCK DESIGN DECISION:
    current_stock is a mutable counter shared by several workflows. It must
    never be written with a read-then-write sequence; stock_service issues
    a single server-side UPDATE (current_stock = current_stock + delta).
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("org_id", "sku", name="uq_inventory_items_org_sku"),
        db.Index("ix_inventory_items_org_name", "org_id", "name"),
        db.CheckConstraint("current_stock >= 0", name="ck_inventory_items_stock_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents (frontend may only format for display)
    cost_price_cents = db.Column(db.Integer, nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=True)

    current_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("inventory_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "sku": self.sku,
            "name": self.name,
            "cost_price_cents": self.cost_price_cents,
            "unit_price_cents": self.unit_price_cents,
            "current_stock": self.current_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryAdjustment(db.Model):
    """
    Stock correction awaiting (or past) review.

    LIFECYCLE:
    pending -> approved   (stock effect applied exactly once, here)
    pending -> rejected   (never touches stock)
    approved / rejected are terminal. Reversing an approved adjustment is a
    new adjustment of type 'reversal' pointing at the original.

    cost_impact_cents is fixed when the record is created and is never
    re-derived from the catalog's current cost price.
    """
    __tablename__ = "inventory_adjustments"
    __table_args__ = (
        db.Index("ix_inv_adj_org_created", "org_id", "created_at"),
        db.Index("ix_inv_adj_org_status", "org_id", "status"),
        db.CheckConstraint("quantity >= 1", name="ck_inv_adj_quantity_positive"),
        db.CheckConstraint(
            "adjustment_type IN ('return', 'damage', 'loss', 'expired', 'correction', 'reversal')",
            name="ck_inv_adj_type_valid",
        ),
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_inv_adj_status_valid",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    # return | damage | loss | expired | correction | reversal
    adjustment_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=False)
    customer_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Meaningful for 'return' only; False for every other type
    return_to_stock = db.Column(db.Boolean, nullable=False, default=False)

    cost_impact_cents = db.Column(db.Integer, nullable=False, default=0)

    # pending | approved | rejected
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    # Set by approve AND reject (the reviewer)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Signed change actually written to current_stock on approval (after flooring)
    stock_delta_applied = db.Column(db.Integer, nullable=True)

    reverses_adjustment_id = db.Column(
        db.Integer, db.ForeignKey("inventory_adjustments.id"), nullable=True, index=True
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inventory_item = db.relationship("InventoryItem", backref=db.backref("adjustments", lazy=True))
    processed_by = db.relationship("User", foreign_keys=[processed_by_user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])
    reverses = db.relationship("InventoryAdjustment", remote_side=[id])

    def __repr__(self) -> str:
        return (
            f"<InventoryAdjustment id={self.id} type={self.adjustment_type} "
            f"qty={self.quantity} status={self.status}>"
        )

    def to_dict(self) -> dict:
        item = self.inventory_item
        return {
            "id": self.id,
            "org_id": self.org_id,
            "inventory_item_id": self.inventory_item_id,
            "inventory": {"name": item.name, "sku": item.sku} if item else None,
            "adjustment_type": self.adjustment_type,
            "quantity": self.quantity,
            "reason": self.reason,
            "customer_name": self.customer_name,
            "notes": self.notes,
            "return_to_stock": self.return_to_stock,
            "cost_impact_cents": self.cost_impact_cents,
            "status": self.status,
            "processed_by_user_id": self.processed_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "resolved_at": to_utc_z(self.resolved_at),
            "stock_delta_applied": self.stock_delta_applied,
            "reverses_adjustment_id": self.reverses_adjustment_id,
            "created_at": to_utc_z(self.created_at),
        }
