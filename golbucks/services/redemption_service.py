"""
golbucks.services.redemption_service — Reward Catalog Redemption
=================================================================

Citizens spend Golbucks on catalog rewards.  Stock-limited rewards use the
same allocation rule as event seats: the reward row is locked, stock is
checked and decremented in the unit of work that debits the points.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from golbucks.database.models import ReasonCode, RewardItem, RewardRedemption
from golbucks.errors import (
    AlreadyUsedError,
    NotFoundError,
    OutOfStockError,
    RedemptionExpiredError,
)
from golbucks.services import ledger_service
from golbucks.services.notifications import Notifier, notify_after_commit
from golbucks.services.unit_of_work import lock_by_pk, lock_one, unit_of_work

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass
class RedemptionResult:
    redemption: RewardRedemption
    points_spent: int
    new_balance: int


def _normalize_dt(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def redeem(
    engine: Engine,
    account_id: int,
    reward_id: int,
    *,
    now: datetime | None = None,
    notifier: Notifier | None = None,
    lock_timeout_ms: int | None = None,
) -> RedemptionResult:
    """Buy one unit of *reward_id* with points."""
    now = _normalize_dt(now or datetime.now(UTC))
    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        reward = lock_by_pk(session, RewardItem, reward_id)
        if reward is None or not reward.is_active:
            raise NotFoundError("Reward", reward_id)
        if reward.stock is not None and reward.stock <= 0:
            raise OutOfStockError("Reward is out of stock")

        new_balance = ledger_service.debit(
            session,
            account_id,
            reward.points_cost,
            ReasonCode.REWARD_PURCHASE,
            {"reward_id": reward_id},
            description=f"Reward purchased: {reward.title}",
        )

        expires_at = None
        if reward.validity_days:
            expires_at = now + timedelta(days=reward.validity_days)

        redemption = RewardRedemption(
            account_id=account_id,
            reward_id=reward_id,
            qr_token=uuid.uuid4().hex,
            expires_at=expires_at,
            is_used=False,
        )
        session.add(redemption)
        session.flush()
        redemption.reference_code = f"RWD-{reward_id}-{redemption.id:06d}"

        if reward.stock is not None:
            reward.stock -= 1

        session.flush()
        notify_after_commit(
            session, notifier, "reward.redeemed", account_id,
            reward_id=reward_id, redemption_id=redemption.id,
        )
        result = RedemptionResult(
            redemption=redemption,
            points_spent=reward.points_cost,
            new_balance=new_balance,
        )

    logger.info(
        "Account %d redeemed reward %d for %d points",
        account_id, reward_id, result.points_spent,
    )
    return result


def use_redemption(
    engine: Engine,
    account_id: int,
    redemption_id: int,
    *,
    now: datetime | None = None,
    lock_timeout_ms: int | None = None,
) -> RewardRedemption:
    """Mark a redeemed reward as used by its owner."""
    now = _normalize_dt(now or datetime.now(UTC))
    with unit_of_work(engine, lock_timeout_ms=lock_timeout_ms) as session:
        redemption = lock_one(
            session,
            RewardRedemption,
            RewardRedemption.id == redemption_id,
            RewardRedemption.account_id == account_id,
        )
        if redemption is None:
            raise NotFoundError("User reward", redemption_id)
        if redemption.is_used:
            raise AlreadyUsedError("Reward already used")
        if redemption.expires_at is not None and _normalize_dt(redemption.expires_at) < now:
            raise RedemptionExpiredError("Reward has expired")
        redemption.is_used = True
        redemption.used_at = now

    return redemption
