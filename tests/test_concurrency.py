"""
tests/test_concurrency.py — Concurrent Allocation Tests
========================================================
Races run on a file-backed SQLite database whose writers are serialized by
``BEGIN IMMEDIATE``; each thread goes through ``run_with_retry`` exactly as
the API does.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from conftest import get_balance, seed_account, seed_campaign, seed_event, seed_reward
from sqlalchemy.orm import Session

from golbucks.database.models import Campaign, Event, RewardItem
from golbucks.errors import (
    AlreadyClaimedError,
    CapacityExceededError,
    ExceedsRemainingError,
    GolbucksError,
    InsufficientFundsError,
)
from golbucks.services import (
    contribution_service,
    ledger_service,
    redemption_service,
    registration_service,
    streak_service,
)
from golbucks.services.unit_of_work import run_with_retry

WORKERS = 8


def _race(func, calls):
    """Run ``func(*args)`` for every args tuple concurrently.

    Returns ``(successes, failures)`` where failures are the raised
    :class:`GolbucksError` instances.
    """

    def attempt(args):
        try:
            return True, run_with_retry(func, *args, attempts=5, base_delay=0.01)
        except GolbucksError as exc:
            return False, exc

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        outcomes = list(pool.map(attempt, calls))
    successes = [value for ok, value in outcomes if ok]
    failures = [value for ok, value in outcomes if not ok]
    return successes, failures


class TestCapacityRace:
    def test_exactly_capacity_registrations_win(self, file_db_engine):
        engine = file_db_engine
        accounts = list(range(1, 11))
        for account_id in accounts:
            seed_account(engine, account_id)
        event_id = seed_event(engine, capacity=3, event_date=date(2099, 1, 1))

        successes, failures = _race(
            registration_service.register,
            [(engine, account_id, event_id) for account_id in accounts],
        )

        assert len(successes) == 3
        assert len(failures) == 7
        assert all(isinstance(f, CapacityExceededError) for f in failures)
        with Session(engine) as session:
            assert session.get(Event, event_id).registered_count == 3


class TestBalanceRace:
    def test_concurrent_debits_never_overdraw(self, file_db_engine):
        engine = file_db_engine
        seed_account(engine, 1, balance=50)

        def withdraw(engine, account_id):
            return ledger_service.adjust_balance(engine, account_id, -10, admin_id=99)

        successes, failures = _race(withdraw, [(engine, 1) for _ in range(10)])

        assert len(successes) == 5
        assert len(failures) == 5
        assert all(isinstance(f, InsufficientFundsError) for f in failures)
        assert get_balance(engine, 1) == 0

    def test_concurrent_redemptions_respect_balance_and_stock(self, file_db_engine):
        engine = file_db_engine
        seed_account(engine, 1, balance=100)
        reward_id = seed_reward(engine, points_cost=30, stock=10)

        successes, failures = _race(
            redemption_service.redeem, [(engine, 1, reward_id) for _ in range(6)]
        )

        assert len(successes) == 3
        assert all(isinstance(f, InsufficientFundsError) for f in failures)
        assert get_balance(engine, 1) == 10
        with Session(engine) as session:
            assert session.get(RewardItem, reward_id).stock == 7
            assert ledger_service.verify_account(session, 1)


class TestClaimRace:
    def test_same_day_claims_pay_once(self, file_db_engine):
        engine = file_db_engine
        seed_account(engine, 1)
        today = date(2026, 3, 1)

        def claim(engine, account_id):
            return streak_service.claim(engine, account_id, today=today)

        successes, failures = _race(claim, [(engine, 1) for _ in range(6)])

        assert len(successes) == 1
        assert len(failures) == 5
        assert all(isinstance(f, AlreadyClaimedError) for f in failures)
        assert get_balance(engine, 1) == 10


class TestContributionRace:
    def test_joint_contributions_never_overshoot_target(self, file_db_engine):
        engine = file_db_engine
        seed_account(engine, 1)
        contributors = list(range(2, 7))
        for account_id in contributors:
            seed_account(engine, account_id)
        campaign_id = seed_campaign(engine, 1, target_amount=100)

        successes, failures = _race(
            contribution_service.contribute,
            [(engine, campaign_id, account_id, 30) for account_id in contributors],
        )

        assert len(successes) == 3
        assert len(failures) == 2
        assert all(isinstance(f, ExceedsRemainingError) for f in failures)
        with Session(engine) as session:
            campaign = session.get(Campaign, campaign_id)
            assert campaign.collected_amount == 90
            assert campaign.supporter_count == 3


@pytest.mark.parametrize("workers", [2, WORKERS])
def test_balance_equals_ledger_sum_after_mixed_race(file_db_engine, workers):
    engine = file_db_engine
    seed_account(engine, 1, balance=40)

    def adjust(engine, delta):
        return ledger_service.adjust_balance(engine, 1, delta, admin_id=99)

    calls = [(engine, delta) for delta in (-15, 10, -15, -15, 5, -15, 20, -15)]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        list(pool.map(lambda args: _safe(adjust, *args), calls))

    balance = get_balance(engine, 1)
    assert balance >= 0
    with Session(engine) as session:
        assert ledger_service.verify_account(session, 1)


def _safe(func, *args):
    try:
        return run_with_retry(func, *args, attempts=5, base_delay=0.01)
    except InsufficientFundsError:
        return None


def test_two_contributions_that_jointly_overshoot(file_db_engine):
    engine = file_db_engine
    for account_id in (1, 2, 3):
        seed_account(engine, account_id)
    campaign_id = seed_campaign(engine, 1, target_amount=100)

    successes, failures = _race(
        contribution_service.contribute,
        [(engine, campaign_id, 2, 60), (engine, campaign_id, 3, 60)],
    )

    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], ExceedsRemainingError)
    assert contribution_service.get_campaign(engine, campaign_id).collected_amount == 60
