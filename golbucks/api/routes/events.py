"""
golbucks.api.routes.events — Event registration endpoints
==========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import Engine

from golbucks.api.deps import EngineCall, get_current_account, get_engine, get_notifier
from golbucks.database.models import Registration, RegistrationStatus
from golbucks.services import registration_service
from golbucks.services.notifications import Notifier

router = APIRouter(prefix="/events", tags=["events"])


def registration_dict(r: Registration) -> dict:
    return {
        "id": r.id,
        "event_id": r.event_id,
        "status": r.status,
        "qr_token": r.qr_token,
        "reference_code": r.reference_code,
        "registered_at": r.registered_at.isoformat() if r.registered_at else None,
        "cancelled_at": r.cancelled_at.isoformat() if r.cancelled_at else None,
    }


@router.get("/my-registrations")
def my_registrations(
    status_filter: RegistrationStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    account_id: int = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    rows, total = registration_service.list_registrations(
        engine, account_id, status=status_filter, limit=limit, offset=offset
    )
    return {
        "registrations": [registration_dict(r) for r in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/{event_id}/capacity")
def get_capacity(event_id: int, engine: Engine = Depends(get_engine)):
    snap = registration_service.capacity_snapshot(engine, event_id)
    return {
        "event_id": snap.event_id,
        "capacity": snap.capacity,
        "registered": snap.registered_count,
        "remaining": snap.remaining,
        "is_full": snap.is_full,
    }


@router.post("/{event_id}/register", status_code=status.HTTP_201_CREATED)
async def register(
    event_id: int,
    account_id: int = Depends(get_current_account),
    call: EngineCall = Depends(),
    notifier: Notifier = Depends(get_notifier),
):
    result = await call(registration_service.register, account_id, event_id, notifier=notifier)
    return {
        "registration": registration_dict(result.registration),
        "golbucks_reward": result.reward_points,
        "new_balance": result.new_balance,
    }


@router.delete("/{event_id}/register")
async def cancel_registration(
    event_id: int,
    account_id: int = Depends(get_current_account),
    call: EngineCall = Depends(),
    notifier: Notifier = Depends(get_notifier),
):
    registration = await call(
        registration_service.cancel, account_id, event_id, notifier=notifier
    )
    return {"registration": registration_dict(registration)}
