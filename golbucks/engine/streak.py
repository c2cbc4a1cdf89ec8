"""
golbucks.engine.streak — Daily Claim Streak Arithmetic
=======================================================

Pure calculation, no DB I/O.  The persistence side lives in
:mod:`golbucks.services.streak_service`.

Rules:
  * One claim per calendar day, and never for a day on or before the last
    claim.
  * A claim exactly one day after the previous one extends the streak by 1;
    any other gap (and the first ever claim) restarts it at 1.
  * The claim that brings the streak to ``bonus_days`` pays
    ``daily_amount + bonus_amount``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from golbucks.config import RewardSettings


@dataclass(frozen=True)
class StreakStatus:
    """Read-only view of an account's claim eligibility."""

    can_claim: bool
    is_consecutive: bool
    will_bonus: bool
    last_claim_date: date | None
    current_streak: int
    longest_streak: int
    total_claims: int


@dataclass(frozen=True)
class ClaimOutcome:
    """What a claim made today would do."""

    new_streak: int
    daily_amount: int
    bonus_amount: int

    @property
    def total(self) -> int:
        return self.daily_amount + self.bonus_amount

    @property
    def is_bonus(self) -> bool:
        return self.bonus_amount > 0


def day_gap(last_claim_date: date | None, today: date) -> int | None:
    """Whole days between the last claim and *today*; None if never claimed."""
    if last_claim_date is None:
        return None
    return (today - last_claim_date).days


def compute_status(
    *,
    last_claim_date: date | None,
    current_streak: int,
    longest_streak: int,
    total_claims: int,
    today: date,
    settings: RewardSettings,
) -> StreakStatus:
    can_claim = last_claim_date is None or today > last_claim_date
    is_consecutive = day_gap(last_claim_date, today) == 1
    return StreakStatus(
        can_claim=can_claim,
        is_consecutive=is_consecutive,
        will_bonus=is_consecutive and current_streak == settings.bonus_days - 1,
        last_claim_date=last_claim_date,
        current_streak=current_streak,
        longest_streak=longest_streak,
        total_claims=total_claims,
    )


def next_streak(last_claim_date: date | None, current_streak: int, today: date) -> int:
    """Streak length after claiming on *today*.

    Callers must reject claims on or before the last claim date first; any
    gap other than 1 restarts the streak.
    """
    if day_gap(last_claim_date, today) == 1:
        return current_streak + 1
    return 1


def plan_claim(
    last_claim_date: date | None,
    current_streak: int,
    today: date,
    settings: RewardSettings,
) -> ClaimOutcome:
    streak = next_streak(last_claim_date, current_streak, today)
    bonus = settings.bonus_amount if streak == settings.bonus_days else 0
    return ClaimOutcome(
        new_streak=streak,
        daily_amount=settings.daily_amount,
        bonus_amount=bonus,
    )
