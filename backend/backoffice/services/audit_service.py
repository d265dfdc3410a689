# Overview: Append-only audit trail for adjustment and stock events.

from __future__ import annotations

import json
from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import AuditEvent
"""
Audit Trail Invariants

- Append-only: no updates/deletes of existing events.
- No domain/business logic in the audit trail itself.
- Events are flushed inside the caller's transaction; the caller commits
  (or rolls back) together with the domain change they describe.
- occurred_at is business time; created_at is system time (DB default).
"""

CATEGORY_ADJUSTMENTS = "adjustments"
CATEGORY_INVENTORY = "inventory"


def append_audit_event(
    *,
    org_id: int,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    adjustment_id: int | None = None,
    inventory_item_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> AuditEvent:
    """Append one audit event without committing."""
    ev = AuditEvent(
        org_id=org_id,
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        adjustment_id=adjustment_id,
        inventory_item_id=inventory_item_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note[:255] if note else None,
        payload=json.dumps(payload, sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_audit_events(
    org_id: int,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    category: str | None = None,
    limit: int = 100,
) -> list[AuditEvent]:
    """Newest first."""
    q = db.session.query(AuditEvent).filter(AuditEvent.org_id == org_id)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if category:
        q = q.filter(AuditEvent.event_category == category)
    limit = max(1, min(limit, 500))
    return q.order_by(AuditEvent.occurred_at.desc(), AuditEvent.id.desc()).limit(limit).all()
