# Overview: Retention cleanup for security events and sessions.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from backoffice.time_utils import utcnow
from .session_service import cleanup_expired_sessions


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """
    Delete security events older than retention_days.

    Audit events are preserved.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def run_retention(*, retention_days: int = 90) -> dict:
    return {
        "security_events_deleted": cleanup_security_events(retention_days=retention_days),
        "sessions_deleted": cleanup_expired_sessions(),
    }
