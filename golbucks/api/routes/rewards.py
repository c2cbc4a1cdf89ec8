"""
golbucks.api.routes.rewards — Daily reward and catalog redemption endpoints
============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy import Engine

from golbucks.api.deps import EngineCall, get_config, get_current_account, get_engine, get_notifier
from golbucks.config import GolbucksConfig
from golbucks.database.models import RewardRedemption
from golbucks.services import redemption_service, streak_service
from golbucks.services.notifications import Notifier

router = APIRouter(prefix="/rewards", tags=["rewards"])


def _redemption_dict(r: RewardRedemption) -> dict:
    return {
        "id": r.id,
        "reward_id": r.reward_id,
        "qr_token": r.qr_token,
        "reference_code": r.reference_code,
        "expires_at": r.expires_at.isoformat() if r.expires_at else None,
        "is_used": r.is_used,
        "used_at": r.used_at.isoformat() if r.used_at else None,
    }


# ---------------------------------------------------------------------------
# Daily reward
# ---------------------------------------------------------------------------
@router.get("/daily")
def get_daily_status(
    account_id: int = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
    config: GolbucksConfig = Depends(get_config),
):
    st = streak_service.status(engine, account_id, settings=config.rewards)
    return {
        "can_claim": st.can_claim,
        "is_consecutive": st.is_consecutive,
        "will_bonus": st.will_bonus,
        "last_claim_date": st.last_claim_date.isoformat() if st.last_claim_date else None,
        "current_streak": st.current_streak,
        "longest_streak": st.longest_streak,
        "total_claims": st.total_claims,
        "daily_amount": config.rewards.daily_amount,
        "bonus_days": config.rewards.bonus_days,
        "bonus_amount": config.rewards.bonus_amount,
    }


@router.post("/daily")
async def claim_daily(
    account_id: int = Depends(get_current_account),
    call: EngineCall = Depends(),
    notifier: Notifier = Depends(get_notifier),
):
    result = await call(
        streak_service.claim,
        account_id,
        settings=call.config.rewards,
        notifier=notifier,
    )
    return {
        "amount": result.amount,
        "streak_bonus": result.bonus,
        "streak": result.streak,
        "longest_streak": result.longest_streak,
        "total_claims": result.total_claims,
        "new_balance": result.new_balance,
    }


# ---------------------------------------------------------------------------
# Catalog redemption
# ---------------------------------------------------------------------------
@router.post("/{reward_id}/redeem", status_code=status.HTTP_201_CREATED)
async def redeem_reward(
    reward_id: int,
    account_id: int = Depends(get_current_account),
    call: EngineCall = Depends(),
    notifier: Notifier = Depends(get_notifier),
):
    result = await call(redemption_service.redeem, account_id, reward_id, notifier=notifier)
    return {
        "user_reward": _redemption_dict(result.redemption),
        "points_spent": result.points_spent,
        "new_balance": result.new_balance,
    }


@router.put("/my/{redemption_id}/use")
async def use_reward(
    redemption_id: int,
    account_id: int = Depends(get_current_account),
    call: EngineCall = Depends(),
):
    redemption = await call(redemption_service.use_redemption, account_id, redemption_id)
    return {"user_reward": _redemption_dict(redemption)}
