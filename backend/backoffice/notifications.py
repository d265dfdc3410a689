# Overview: Commit-time change notifications for domain tables.

"""
Change Notification Channel

After every successful commit that touched domain rows, the blinker signal
``table_changed`` is sent once per tenant with the set of table names that
changed. Consumers (CashBookFeed, adjustment listeners) re-query on their own
schedule; receivers must not use the committing session.

Rows are collected from the session in after_flush. Bulk UPDATE statements
bypass the unit of work, so services issuing them call mark_changed().
"""

from __future__ import annotations

from blinker import Namespace
from sqlalchemy import event
from sqlalchemy.orm import Session

from .extensions import db


_signals = Namespace()

# sender: org_id (or None), kwargs: tables=frozenset[str]
table_changed = _signals.signal("table-changed")

_INFO_KEY = "backoffice.changed_tables"


def _pending(session) -> dict:
    return session.info.setdefault(_INFO_KEY, {})


def _record(session, table: str, org_id) -> None:
    _pending(session).setdefault(org_id, set()).add(table)


def mark_changed(table: str, org_id: int | None, session=None) -> None:
    """Record a change made outside the ORM unit of work (bulk UPDATE)."""
    _record(session if session is not None else db.session(), table, org_id)


@event.listens_for(Session, "after_flush")
def _collect_changes(session, flush_context):
    for obj in list(session.new) + list(session.dirty) + list(session.deleted):
        table = getattr(obj, "__tablename__", None)
        if table is None:
            continue
        if obj in session.dirty and not session.is_modified(obj, include_collections=False):
            continue
        _record(session, table, getattr(obj, "org_id", None))


@event.listens_for(Session, "after_commit")
def _dispatch_changes(session):
    changed = session.info.pop(_INFO_KEY, None)
    if not changed:
        return
    for org_id, tables in changed.items():
        table_changed.send(org_id, tables=frozenset(tables))


@event.listens_for(Session, "after_rollback")
def _discard_changes(session):
    session.info.pop(_INFO_KEY, None)


def subscribe(tables, callback, *, org_id=None):
    """
    Call ``callback(org_id, tables)`` whenever any of ``tables`` changes.

    When org_id is given only that tenant's changes are delivered. Returns the
    receiver; pass it to unsubscribe() to stop delivery. The receiver is held
    strongly, so it lives until unsubscribed.
    """
    watched = frozenset(tables)

    def _receiver(sender, tables=frozenset(), **extra):
        if org_id is not None and sender != org_id:
            return
        hit = watched & tables
        if hit:
            callback(sender, frozenset(hit))

    table_changed.connect(_receiver, weak=False)
    return _receiver


def unsubscribe(receiver) -> None:
    table_changed.disconnect(receiver)
