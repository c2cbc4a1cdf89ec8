"""
golbucks.api.routes.golbucks — Balance and ledger history (read-only)
======================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from golbucks.api.deps import get_current_account, get_engine
from golbucks.database.models import LedgerEntry
from golbucks.services import ledger_service

router = APIRouter(prefix="/golbucks", tags=["golbucks"])


def _entry_dict(e: LedgerEntry) -> dict:
    return {
        "id": e.id,
        "delta": e.delta,
        "resulting_balance": e.resulting_balance,
        "reason_code": e.reason_code,
        "description": e.description,
        "metadata": e.metadata_ or {},
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


@router.get("/balance")
def get_balance(
    account_id: int = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    return {"balance": ledger_service.get_balance(engine, account_id)}


@router.get("/history")
def get_history(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    account_id: int = Depends(get_current_account),
    engine: Engine = Depends(get_engine),
):
    page = ledger_service.get_history(engine, account_id, limit=limit, offset=offset)
    return {
        "transactions": [_entry_dict(e) for e in page.entries],
        "total": page.total,
        "limit": page.limit,
        "offset": page.offset,
    }
