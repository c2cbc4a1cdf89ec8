"""
golbucks.services.streak_service — Daily Reward Claims
=======================================================

Persistence side of the reward streak.  The arithmetic is in
:mod:`golbucks.engine.streak`; this module locks rows, applies the plan and
credits the ledger inside one unit of work:

  1. Lock the account row (serializes a first-ever claim)
  2. Lock the streak row, creating it with zeros if absent
  3. Reject a claim on or before the last claim date
  4. Update streak counters and credit the reward in one ledger entry
  5. Commit both together
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from golbucks.config import RewardSettings
from golbucks.database.models import Account, ReasonCode, RewardStreak
from golbucks.engine.streak import StreakStatus, compute_status, plan_claim
from golbucks.errors import AlreadyClaimedError, NotFoundError
from golbucks.services import ledger_service
from golbucks.services.notifications import Notifier, notify_after_commit
from golbucks.services.unit_of_work import lock_by_pk, unit_of_work

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = RewardSettings()


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of a successful claim."""

    amount: int
    bonus: int
    streak: int
    longest_streak: int
    total_claims: int
    new_balance: int


def utc_today() -> date:
    return datetime.now(UTC).date()


def status(
    engine: Engine,
    account_id: int,
    *,
    today: date | None = None,
    settings: RewardSettings = DEFAULT_SETTINGS,
) -> StreakStatus:
    """Read-only claim eligibility.  Takes no locks and creates no rows."""
    today = today or utc_today()
    with Session(engine) as session:
        row = session.get(RewardStreak, account_id)
        if row is None:
            return compute_status(
                last_claim_date=None,
                current_streak=0,
                longest_streak=0,
                total_claims=0,
                today=today,
                settings=settings,
            )
        return compute_status(
            last_claim_date=row.last_claim_date,
            current_streak=row.current_streak,
            longest_streak=row.longest_streak,
            total_claims=row.total_claims,
            today=today,
            settings=settings,
        )


def _lock_or_create_streak(session: Session, account_id: int) -> RewardStreak:
    if lock_by_pk(session, Account, account_id) is None:
        raise NotFoundError("Account", account_id)
    row = lock_by_pk(session, RewardStreak, account_id)
    if row is None:
        row = RewardStreak(
            account_id=account_id,
            last_claim_date=None,
            current_streak=0,
            longest_streak=0,
            total_claims=0,
        )
        session.add(row)
        session.flush()
    return row


def claim(
    engine: Engine,
    account_id: int,
    *,
    today: date | None = None,
    settings: RewardSettings = DEFAULT_SETTINGS,
    notifier: Notifier | None = None,
    lock_timeout_ms: int | None = None,
) -> ClaimResult:
    """Claim today's reward for *account_id*.

    Raises :class:`AlreadyClaimedError` if a claim was already made today or
    *today* is earlier than the last claim date.
    """
    today = today or utc_today()
    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        row = _lock_or_create_streak(session, account_id)
        if row.last_claim_date is not None and today <= row.last_claim_date:
            raise AlreadyClaimedError("Daily reward already claimed today")

        plan = plan_claim(row.last_claim_date, row.current_streak, today, settings)

        row.last_claim_date = today
        row.current_streak = plan.new_streak
        row.longest_streak = max(row.longest_streak, plan.new_streak)
        row.total_claims += 1

        new_balance = ledger_service.credit(
            session,
            account_id,
            plan.total,
            ReasonCode.DAILY_REWARD,
            {
                "streak": plan.new_streak,
                "daily_amount": plan.daily_amount,
                "streak_bonus": plan.bonus_amount,
                "claim_date": today.isoformat(),
            },
            description=f"Daily reward, day {plan.new_streak}",
        )

        result = ClaimResult(
            amount=plan.total,
            bonus=plan.bonus_amount,
            streak=row.current_streak,
            longest_streak=row.longest_streak,
            total_claims=row.total_claims,
            new_balance=new_balance,
        )
        notify_after_commit(
            session, notifier, "reward.claimed", account_id,
            amount=plan.total, streak=plan.new_streak, bonus=plan.is_bonus,
        )

    logger.info(
        "Account %d claimed %d (streak %d%s)",
        account_id, result.amount, result.streak, ", bonus" if result.bonus else "",
    )
    return result
