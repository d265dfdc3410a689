from __future__ import annotations

import json

from ..extensions import db
from backoffice.time_utils import to_utc_z

class AuditEvent(db.Model):
    """
    Append-only audit trail for stock and adjustment events.

    - Written inside the same DB transaction as the domain change it records.
    - occurred_at is business time; created_at is system time (DB default).
    - No updates/deletes of existing events.
    """
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_events_org_occurred", "org_id", "occurred_at"),
        db.Index("ix_audit_events_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g., adjustment.approved, stock.adjusted
    event_category = db.Column(db.String(32), nullable=False, index=True)  # adjustments, inventory

    entity_type = db.Column(db.String(64), nullable=False)  # e.g., inventory_adjustment, inventory_item
    entity_id = db.Column(db.Integer, nullable=False)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    adjustment_id = db.Column(db.Integer, db.ForeignKey("inventory_adjustments.id"), nullable=True, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "event_type": self.event_type,
            "event_category": self.event_category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "adjustment_id": self.adjustment_id,
            "inventory_item_id": self.inventory_item_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": json.loads(self.payload) if self.payload else None,
        }
