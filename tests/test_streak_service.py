"""
tests/test_streak_service.py — Daily Reward Claim Tests
========================================================
Claims against the in-memory SQLite database: once-per-day enforcement,
streak reset, and the bonus paid inside the same ledger entry.
"""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest
from conftest import get_balance, seed_account
from sqlalchemy import select
from sqlalchemy.orm import Session

from golbucks.database.models import LedgerEntry, RewardStreak
from golbucks.errors import AlreadyClaimedError, NotFoundError
from golbucks.services import streak_service

DAY1 = date(2026, 3, 1)


@pytest.fixture
def engine(db_engine):
    seed_account(db_engine, 1)
    return db_engine


def _day(n: int) -> date:
    return DAY1 + timedelta(days=n - 1)


def _ledger(engine) -> list[LedgerEntry]:
    with Session(engine) as session:
        return list(session.scalars(select(LedgerEntry).order_by(LedgerEntry.id)))


# ===========================================================================
# Claim
# ===========================================================================
class TestClaim:
    def test_first_claim_creates_streak_row(self, engine):
        result = streak_service.claim(engine, 1, today=DAY1)
        assert result.amount == 10
        assert result.streak == 1
        assert result.total_claims == 1
        assert result.new_balance == 10

        with Session(engine) as session:
            row = session.get(RewardStreak, 1)
            assert row.last_claim_date == DAY1
            assert row.current_streak == 1

    def test_second_claim_same_day_rejected(self, engine):
        streak_service.claim(engine, 1, today=DAY1)
        with pytest.raises(AlreadyClaimedError):
            streak_service.claim(engine, 1, today=DAY1)
        assert get_balance(engine, 1) == 10
        assert len(_ledger(engine)) == 1

    def test_skip_a_day_resets_streak(self, engine):
        assert streak_service.claim(engine, 1, today=_day(1)).new_balance == 10
        second = streak_service.claim(engine, 1, today=_day(2))
        assert (second.new_balance, second.streak) == (20, 2)
        result = streak_service.claim(engine, 1, today=_day(4))
        assert result.streak == 1
        assert result.longest_streak == 2
        assert result.new_balance == 30

    def test_bonus_paid_in_single_entry_on_day_seven(self, engine):
        for n in range(1, 7):
            streak_service.claim(engine, 1, today=_day(n))
        result = streak_service.claim(engine, 1, today=_day(7))

        assert result.streak == 7
        assert result.bonus == 20
        assert result.amount == 30
        assert result.new_balance == 6 * 10 + 30

        entries = _ledger(engine)
        assert len(entries) == 7
        bonus_entry = entries[-1]
        assert bonus_entry.delta == 30
        assert bonus_entry.metadata_["streak_bonus"] == 20
        assert bonus_entry.metadata_["streak"] == 7

    def test_day_eight_pays_plain_amount(self, engine):
        for n in range(1, 8):
            streak_service.claim(engine, 1, today=_day(n))
        assert streak_service.claim(engine, 1, today=_day(8)).amount == 10

    def test_unknown_account(self, engine):
        with pytest.raises(NotFoundError):
            streak_service.claim(engine, 404, today=DAY1)
        with Session(engine) as session:
            assert session.get(RewardStreak, 404) is None

    def test_notifier_called_after_commit(self, engine):
        notifier = MagicMock()
        streak_service.claim(engine, 1, today=DAY1, notifier=notifier)
        notifier.send.assert_called_once()
        sent = notifier.send.call_args.args[0]
        assert sent.topic == "reward.claimed"
        assert sent.account_id == 1

    def test_rejected_claim_sends_nothing(self, engine):
        streak_service.claim(engine, 1, today=DAY1)
        notifier = MagicMock()
        with pytest.raises(AlreadyClaimedError):
            streak_service.claim(engine, 1, today=DAY1, notifier=notifier)
        notifier.send.assert_not_called()

    def test_claim_for_earlier_day_rejected(self, engine):
        streak_service.claim(engine, 1, today=_day(2))
        with pytest.raises(AlreadyClaimedError):
            streak_service.claim(engine, 1, today=_day(1))
        with pytest.raises(AlreadyClaimedError):
            streak_service.claim(engine, 1, today=_day(2))

        assert get_balance(engine, 1) == 10
        assert len(_ledger(engine)) == 1
        with Session(engine) as session:
            assert session.get(RewardStreak, 1).last_claim_date == _day(2)


# ===========================================================================
# Status
# ===========================================================================
class TestStatus:
    def test_status_creates_no_row(self, engine):
        st = streak_service.status(engine, 1, today=DAY1)
        assert st.can_claim
        assert st.current_streak == 0
        with Session(engine) as session:
            assert session.get(RewardStreak, 1) is None

    def test_status_after_claim(self, engine):
        streak_service.claim(engine, 1, today=DAY1)
        assert not streak_service.status(engine, 1, today=DAY1).can_claim
        nxt = streak_service.status(engine, 1, today=_day(2))
        assert nxt.can_claim
        assert nxt.is_consecutive

    def test_status_for_earlier_day(self, engine):
        streak_service.claim(engine, 1, today=_day(2))
        assert not streak_service.status(engine, 1, today=_day(1)).can_claim
