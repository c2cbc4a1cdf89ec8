"""
golbucks.api.routes.admin — Admin endpoints (JWT-protected, ``is_admin`` claim)
================================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from golbucks.api.deps import (
    EngineCall,
    get_current_admin,
    get_current_admin_id,
    get_notifier,
)
from golbucks.api.routes.bill_supports import campaign_dict
from golbucks.api.routes.events import registration_dict
from golbucks.database.models import CampaignStatus
from golbucks.services import contribution_service, ledger_service, registration_service
from golbucks.services.notifications import Notifier

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class BalanceAdjust(BaseModel):
    account_id: int
    delta: int
    reason: str = ""


class CampaignStatusUpdate(BaseModel):
    status: CampaignStatus
    admin_response: str | None = None


class AttendanceUpdate(BaseModel):
    attended: bool


# ---------------------------------------------------------------------------
# Golbucks
# ---------------------------------------------------------------------------
@router.post("/golbucks/adjust")
async def adjust_balance(
    body: BalanceAdjust,
    admin_id: int = Depends(get_current_admin_id),
    call: EngineCall = Depends(),
    notifier: Notifier = Depends(get_notifier),
):
    balance = await call(
        ledger_service.adjust_balance,
        body.account_id,
        body.delta,
        admin_id=admin_id,
        reason=body.reason,
        notifier=notifier,
    )
    return {"account_id": body.account_id, "balance": balance}


# ---------------------------------------------------------------------------
# Bill supports
# ---------------------------------------------------------------------------
@router.put("/bill-supports/{campaign_id}/status")
async def update_campaign_status(
    campaign_id: int,
    body: CampaignStatusUpdate,
    admin: dict = Depends(get_current_admin),
    call: EngineCall = Depends(),
    notifier: Notifier = Depends(get_notifier),
):
    campaign = await call(
        contribution_service.set_campaign_status,
        campaign_id,
        body.status,
        admin_response=body.admin_response,
        notifier=notifier,
    )
    return {"bill_support": campaign_dict(campaign)}


# ---------------------------------------------------------------------------
# Event attendance
# ---------------------------------------------------------------------------
@router.put("/registrations/{registration_id}/attendance")
async def mark_attendance(
    registration_id: int,
    body: AttendanceUpdate,
    admin: dict = Depends(get_current_admin),
    call: EngineCall = Depends(),
):
    registration = await call(
        registration_service.mark_attendance, registration_id, attended=body.attended
    )
    return {"registration": registration_dict(registration)}
