"""
golbucks.services.ledger_service — Balance Ledger
==================================================

Owns account balances and the append-only ``ledger_entries`` journal.

:func:`credit` and :func:`debit` run inside the caller's unit of work.
Each one locks the account row, reads the balance, writes the new balance
and appends the matching entry, so ``balance == Σ delta`` holds at every
commit.  No other module assigns ``Account.balance``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from golbucks.database.models import Account, LedgerEntry, ReasonCode
from golbucks.errors import InsufficientFundsError, NotFoundError, ValidationError
from golbucks.services.notifications import Notifier, notify_after_commit
from golbucks.services.unit_of_work import lock_by_pk, unit_of_work

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass
class LedgerPage:
    """One page of an account's ledger history, newest first."""

    entries: list[LedgerEntry] = field(default_factory=list)
    total: int = 0
    limit: int = 50
    offset: int = 0


# ---------------------------------------------------------------------------
# In-transaction primitives
# ---------------------------------------------------------------------------
def _lock_account(session: Session, account_id: int) -> Account:
    account = lock_by_pk(session, Account, account_id)
    if account is None:
        raise NotFoundError("Account", account_id)
    return account


def _append(
    session: Session,
    account: Account,
    delta: int,
    reason_code: ReasonCode | str,
    metadata: dict[str, Any] | None,
    description: str | None,
) -> LedgerEntry:
    account.balance += delta
    entry = LedgerEntry(
        account_id=account.id,
        delta=delta,
        resulting_balance=account.balance,
        reason_code=str(reason_code),
        description=description,
        metadata_=metadata or {},
    )
    session.add(entry)
    session.flush()
    return entry


def credit(
    session: Session,
    account_id: int,
    amount: int,
    reason_code: ReasonCode | str,
    metadata: dict[str, Any] | None = None,
    *,
    description: str | None = None,
) -> int:
    """Add *amount* points to the account.  Returns the new balance."""
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    account = _lock_account(session, account_id)
    _append(session, account, amount, reason_code, metadata, description)
    logger.info(
        "Credit %d to account %d (%s) → balance %d",
        amount, account_id, reason_code, account.balance,
    )
    return account.balance


def debit(
    session: Session,
    account_id: int,
    amount: int,
    reason_code: ReasonCode | str,
    metadata: dict[str, Any] | None = None,
    *,
    description: str | None = None,
) -> int:
    """Remove *amount* points from the account.  Returns the new balance.

    Raises :class:`InsufficientFundsError` when the balance is too low;
    nothing is written in that case.
    """
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    account = _lock_account(session, account_id)
    if account.balance < amount:
        raise InsufficientFundsError(balance=account.balance, requested=amount)
    _append(session, account, -amount, reason_code, metadata, description)
    logger.info(
        "Debit %d from account %d (%s) → balance %d",
        amount, account_id, reason_code, account.balance,
    )
    return account.balance


def verify_account(session: Session, account_id: int) -> bool:
    """True when the stored balance equals the sum of the account's deltas."""
    account = session.get(Account, account_id)
    if account is None:
        raise NotFoundError("Account", account_id)
    total = session.scalar(
        select(func.coalesce(func.sum(LedgerEntry.delta), 0)).where(
            LedgerEntry.account_id == account_id
        )
    )
    return int(total) == account.balance


# ---------------------------------------------------------------------------
# Reads (no locks)
# ---------------------------------------------------------------------------
def get_balance(engine: Engine, account_id: int) -> int:
    with Session(engine) as session:
        balance = session.scalar(select(Account.balance).where(Account.id == account_id))
        if balance is None:
            raise NotFoundError("Account", account_id)
        return balance


def get_history(
    engine: Engine, account_id: int, *, limit: int = 50, offset: int = 0
) -> LedgerPage:
    """Return a page of ledger entries for *account_id*, newest first."""
    if limit <= 0 or offset < 0:
        raise ValidationError("limit must be positive and offset non-negative")
    with Session(engine, expire_on_commit=False) as session:
        total = session.scalar(
            select(func.count()).select_from(LedgerEntry).where(
                LedgerEntry.account_id == account_id
            )
        ) or 0
        entries = session.scalars(
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        session.expunge_all()
        return LedgerPage(entries=list(entries), total=total, limit=limit, offset=offset)


# ---------------------------------------------------------------------------
# Admin adjustment (own unit of work)
# ---------------------------------------------------------------------------
def adjust_balance(
    engine: Engine,
    account_id: int,
    delta: int,
    *,
    admin_id: int,
    reason: str = "",
    notifier: Notifier | None = None,
    lock_timeout_ms: int | None = None,
) -> int:
    """Apply a manual admin correction.  Returns the new balance."""
    if delta == 0:
        raise ValidationError("Adjustment must be non-zero")
    metadata = {"admin_id": admin_id, "reason": reason}
    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        if delta > 0:
            balance = credit(
                session, account_id, delta, ReasonCode.ADMIN_ADJUSTMENT, metadata,
                description=reason or None,
            )
        else:
            balance = debit(
                session, account_id, -delta, ReasonCode.ADMIN_ADJUSTMENT, metadata,
                description=reason or None,
            )
        notify_after_commit(
            session, notifier, "golbucks.adjusted", account_id,
            delta=delta, balance=balance,
        )
    return balance
