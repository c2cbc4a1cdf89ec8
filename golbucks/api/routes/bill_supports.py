"""
golbucks.api.routes.bill_supports — Crowdfunded bill-support campaigns
=======================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from golbucks.api.deps import EngineCall, get_current_account, get_engine, get_notifier
from golbucks.database.models import BillType, Campaign, Contribution, PaymentMethod
from golbucks.services import contribution_service
from golbucks.services.notifications import Notifier

router = APIRouter(prefix="/bill-supports", tags=["bill-supports"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CampaignCreate(BaseModel):
    target_amount: int = Field(gt=0)
    bill_type: BillType = BillType.OTHER
    description: str | None = None


class SupportCreate(BaseModel):
    amount: int = Field(gt=0)
    payment_method: PaymentMethod = PaymentMethod.DIRECT
    notes: str | None = None


def campaign_dict(c: Campaign) -> dict:
    return {
        "id": c.id,
        "owner_account_id": c.owner_account_id,
        "bill_type": c.bill_type,
        "description": c.description,
        "target_amount": c.target_amount,
        "collected_amount": c.collected_amount,
        "remaining_amount": c.remaining_amount,
        "supporter_count": c.supporter_count,
        "status": c.status,
        "reference_number": c.reference_number,
        "admin_response": c.admin_response,
    }


def _contribution_dict(c: Contribution) -> dict:
    return {
        "id": c.id,
        "campaign_id": c.campaign_id,
        "contributor_id": c.contributor_id,
        "amount": c.amount,
        "payment_method": c.payment_method,
        "status": c.status,
        "notes": c.notes,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_campaign(
    body: CampaignCreate,
    account_id: int = Depends(get_current_account),
    call: EngineCall = Depends(),
):
    campaign = await call(
        contribution_service.create_campaign,
        account_id,
        target_amount=body.target_amount,
        bill_type=body.bill_type,
        description=body.description,
    )
    return {"bill_support": campaign_dict(campaign)}


@router.get("/{campaign_id}")
def get_campaign(campaign_id: int, engine: Engine = Depends(get_engine)):
    campaign = contribution_service.get_campaign(engine, campaign_id)
    contributions = contribution_service.list_contributions(engine, campaign_id)
    return {
        "bill_support": campaign_dict(campaign),
        "contributions": [_contribution_dict(c) for c in contributions],
    }


@router.post("/{campaign_id}/support", status_code=status.HTTP_201_CREATED)
async def support_campaign(
    campaign_id: int,
    body: SupportCreate,
    account_id: int = Depends(get_current_account),
    call: EngineCall = Depends(),
    notifier: Notifier = Depends(get_notifier),
):
    result = await call(
        contribution_service.contribute,
        campaign_id,
        account_id,
        body.amount,
        body.payment_method,
        notes=body.notes,
        notifier=notifier,
    )
    return {
        "contribution": _contribution_dict(result.contribution),
        "bill_support": {
            "id": campaign_id,
            "collected_amount": result.collected_amount,
            "remaining_amount": result.remaining_amount,
            "supporter_count": result.supporter_count,
            "status": result.campaign_status,
        },
        "new_balance": result.new_balance,
    }
