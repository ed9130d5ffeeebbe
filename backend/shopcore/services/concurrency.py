# Overview: Transaction helpers shared by every stock-touching service.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    Rows already in the identity map are refreshed from the locked read,
    so stock decisions never use values loaded before the lock was held.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() takes the
    database write lock there instead.
    """
    return query.with_for_update().populate_existing()


def begin_write() -> None:
    """
    Start the write transaction before any reads that feed a stock decision.

    On SQLite this issues BEGIN IMMEDIATE so two writers serialize on the
    database lock and the second one reads stock only after the first has
    committed. Other databases rely on lock_for_update() row locks.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


CONCURRENCY_ERRORS = (OperationalError, StaleDataError)

# Order commits also insert the (org, email) customer profile; a concurrent
# first order for the same email loses the unique index race and retries
# into the existing-profile branch.
ORDER_COMMIT_ERRORS = CONCURRENCY_ERRORS + (IntegrityError,)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=CONCURRENCY_ERRORS):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts) by default; callers whose transaction
    can lose an insert race pass ORDER_COMMIT_ERRORS. Any other exception
    rolls the session back and propagates immediately; business errors
    are never retried.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "Retrying after concurrency conflict (attempt %d/%d): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
