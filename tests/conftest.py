"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of golbucks.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import date, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite renders JSONB as TEXT; BigInteger becomes INTEGER so autoincrement
# primary keys work.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from golbucks.database.engine import create_db_engine, init_db  # noqa: E402
from golbucks.database.models import (  # noqa: E402
    Account,
    Campaign,
    CampaignStatus,
    Event,
    ReasonCode,
    RewardItem,
)
from golbucks.services import ledger_service  # noqa: E402
from golbucks.services.unit_of_work import unit_of_work  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB and BigInteger (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Golbucks tables.

    Uses StaticPool so the worker threads behind ``asyncio.to_thread`` see
    the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def file_db_engine(tmp_path) -> Engine:
    """File-backed SQLite engine with serialized writers, for thread races."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'golbucks.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------
def seed_account(engine: Engine, account_id: int, balance: int = 0) -> None:
    """Create an account; an opening balance is written through the ledger."""
    with unit_of_work(engine) as session:
        session.add(Account(id=account_id, display_name=f"user-{account_id}", balance=0))
        session.flush()
        if balance:
            ledger_service.credit(
                session, account_id, balance, ReasonCode.ADMIN_ADJUSTMENT,
                {"reason": "seed"},
            )


def seed_event(
    engine: Engine,
    *,
    capacity: int | None = 10,
    reward_points: int = 0,
    event_date: date | None = None,
    is_active: bool = True,
) -> int:
    with Session(engine) as session:
        event = Event(
            title="Community cleanup",
            event_date=event_date or date.today() + timedelta(days=7),
            capacity=capacity,
            registered_count=0,
            reward_points=reward_points,
            is_active=is_active,
        )
        session.add(event)
        session.commit()
        return event.id


def seed_campaign(
    engine: Engine,
    owner_account_id: int,
    *,
    target_amount: int = 100,
    status: CampaignStatus = CampaignStatus.PENDING,
) -> int:
    with Session(engine) as session:
        campaign = Campaign(
            owner_account_id=owner_account_id,
            target_amount=target_amount,
            collected_amount=0,
            supporter_count=0,
            status=status.value,
        )
        session.add(campaign)
        session.commit()
        return campaign.id


def seed_reward(
    engine: Engine,
    *,
    points_cost: int = 50,
    stock: int | None = None,
    validity_days: int | None = 30,
    is_active: bool = True,
) -> int:
    with Session(engine) as session:
        reward = RewardItem(
            title="Free bus ticket",
            points_cost=points_cost,
            stock=stock,
            validity_days=validity_days,
            is_active=is_active,
        )
        session.add(reward)
        session.commit()
        return reward.id


def get_balance(engine: Engine, account_id: int) -> int:
    with Session(engine) as session:
        return session.get(Account, account_id).balance


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------
def make_token(sub: str = "1", *, is_admin: bool = False) -> str:
    """Create a JWT.  Usable as both a fixture helper and a factory function."""
    import jwt

    from golbucks.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": f"user-{sub}", "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


@pytest.fixture
def admin_token():
    return make_token("99999", is_admin=True)


@pytest.fixture
def client(db_engine: Engine):
    """FastAPI TestClient wired to the in-memory engine and default config."""
    from fastapi.testclient import TestClient

    from golbucks.api.deps import get_config, get_engine
    from golbucks.api.main import app
    from golbucks.config import GolbucksConfig

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: GolbucksConfig()
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
