# Overview: Periodic cleanup jobs run from the CLI.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow
from . import cart_service


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """
    Delete security events older than retention_days.

    Inventory movements are never cleaned up; they are the stock audit trail.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete()
    db.session.commit()
    return deleted


def abandon_stale_carts(*, older_than_hours: int | None = None) -> int:
    return cart_service.abandon_stale_carts(older_than_hours=older_than_hours)
