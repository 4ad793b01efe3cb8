# Overview: Service-layer concurrency helpers; row locks, retries and the per staff-day slot guard.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from datetime import date

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Staff


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Business errors propagate immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


# Fixed pool of process-local lock stripes. One (tenant_id, staff_id, date)
# key always maps to the same stripe; unrelated keys may share a stripe.
SLOT_LOCK_STRIPES = 64
_slot_locks = tuple(threading.Lock() for _ in range(SLOT_LOCK_STRIPES))


def slot_lock_for(tenant_id: int, staff_id: int, day: date) -> threading.Lock:
    return _slot_locks[hash((tenant_id, staff_id, day)) % SLOT_LOCK_STRIPES]


@contextmanager
def slot_guard(tenant_id: int, staff_id: int, day: date):
    """
    Serialize the read-check-write of a confirm for one staff member's day.

    Two layers:
    - a process-local lock stripe chosen by (tenant, staff, date), which is
      what serializes threads on SQLite where FOR UPDATE is a no-op;
    - a row lock on the staff row, which serializes processes on databases
      that honor FOR UPDATE.

    The row lock lives in the caller's transaction, so the caller must
    commit or roll back before leaving the block.
    """
    with slot_lock_for(tenant_id, staff_id, day):
        lock_for_update(
            db.session.query(Staff).filter_by(id=staff_id, tenant_id=tenant_id)
        ).first()
        yield
