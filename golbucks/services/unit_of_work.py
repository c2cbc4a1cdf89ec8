"""
golbucks.services.unit_of_work — Transaction Coordinator
=========================================================

Every mutating engine operation runs inside exactly one unit of work:

  1. Open a session (one transaction)
  2. Lock the aggregate row(s) with ``SELECT … FOR UPDATE``
  3. Validate against the locked snapshot
  4. Mutate, appending ledger entries through the same session
  5. Commit — or roll back everything on any exception
  6. Deliver queued notifications (after commit only)

Store-level lock failures (lock timeout, deadlock, serialization failure,
SQLite "database is locked") surface as :class:`~golbucks.errors.TransientError`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, ParamSpec, TypeVar

from sqlalchemy import Engine, select, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from golbucks.errors import TransientError
from golbucks.services.notifications import deliver_pending, discard_pending

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# lock_not_available, deadlock_detected, serialization_failure
_TRANSIENT_SQLSTATES = frozenset({"55P03", "40P01", "40001"})


def is_transient_failure(exc: DBAPIError) -> bool:
    """True when *exc* is a lock/timeout failure worth retrying."""
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in _TRANSIENT_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


@contextmanager
def unit_of_work(engine: Engine, *, lock_timeout_ms: int | None = None) -> Iterator[Session]:
    """Yield a :class:`Session` that commits on success and rolls back on error.

    Objects stay readable after commit (``expire_on_commit=False``) so
    services can return them to callers.

    Usage::

        with unit_of_work(engine) as session:
            account = lock_by_pk(session, Account, account_id)
            ...
    """
    session = Session(engine, expire_on_commit=False)
    try:
        if lock_timeout_ms is not None and engine.dialect.name == "postgresql":
            session.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))
        yield session
        session.commit()
    except OperationalError as exc:
        session.rollback()
        discard_pending(session)
        if is_transient_failure(exc):
            raise TransientError(f"Store lock failure: {exc.orig}") from exc
        raise
    except Exception:
        session.rollback()
        discard_pending(session)
        raise
    else:
        deliver_pending(session)
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Row locks
# ---------------------------------------------------------------------------
def lock_by_pk(session: Session, model: type[T], pk: Any) -> T | None:
    """``SELECT … FOR UPDATE`` a single row by primary key.

    Always hits the database and refreshes any copy already in the session.
    """
    return session.get(model, pk, with_for_update=True, populate_existing=True)


def lock_one(session: Session, model: type[T], *criteria: Any) -> T | None:
    """``SELECT … FOR UPDATE`` the first row of *model* matching *criteria*."""
    stmt = (
        select(model)
        .where(*criteria)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.scalars(stmt).first()


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------
def run_with_retry(
    func: Callable[P, T],
    *args: P.args,
    attempts: int = 3,
    base_delay: float = 0.05,
    **kwargs: P.kwargs,
) -> T:
    """Call *func*, retrying :class:`TransientError` with exponential backoff.

    Business-rule errors propagate on the first failure.  The last
    :class:`TransientError` is re-raised once *attempts* are exhausted.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except TransientError as exc:
            if attempt >= attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                "Transient failure in %s (attempt %d/%d), retrying in %.2fs: %s",
                getattr(func, "__name__", func), attempt, attempts, delay, exc,
            )
            time.sleep(delay)
    raise TransientError("retry attempts exhausted")
