"""
golbucks.api.deps — FastAPI dependency injection
=================================================
"""

import os
from collections.abc import Callable
from functools import lru_cache
from typing import Annotated, TypeVar

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from golbucks.config import GolbucksConfig, load_config
from golbucks.database.engine import create_db_engine, run_db
from golbucks.services.notifications import LoggingNotifier, Notifier
from golbucks.services.unit_of_work import run_with_retry

T = TypeVar("T")

# Placeholders shipped in docs and .env.example; never valid in a deployment.
_PLACEHOLDER_SECRETS = frozenset({"golbucks-dev-secret-change-me", "change-me", "secret", "dev"})
_SECRET_MIN_CHARS = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Read ``JWT_SECRET``; the API refuses to import without a strong one."""
    secret = os.getenv("JWT_SECRET", "").strip()
    if not secret:
        problem = "is not set (generate one with `openssl rand -base64 48`)"
    elif secret in _PLACEHOLDER_SECRETS:
        problem = f"is a placeholder value ('{secret}')"
    elif len(secret) < _SECRET_MIN_CHARS:
        problem = f"has {len(secret)} characters; at least {_SECRET_MIN_CHARS} are required"
    else:
        return secret
    raise RuntimeError(f"JWT_SECRET {problem}")


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> GolbucksConfig:
    return load_config(os.getenv("GOLBUCKS_CONFIG", "config.yaml"))


@lru_cache(maxsize=1)
def get_notifier() -> Notifier:
    return LoggingNotifier()


def _bearer_claims(authorization: str | None) -> dict:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Bearer token required")
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token rejected")


def _subject_id(claims: dict) -> int:
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no account subject")


def get_current_account(
    authorization: Annotated[str | None, Header()] = None,
) -> int:
    """Account id carried in the token's ``sub`` claim."""
    return _subject_id(_bearer_claims(authorization))


def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Claims of an admin token; 403 when ``is_admin`` is absent or false."""
    claims = _bearer_claims(authorization)
    if not claims.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin privileges required")
    return claims


def get_current_admin_id(admin: Annotated[dict, Depends(get_current_admin)]) -> int:
    """Account id of the acting admin, for audit metadata."""
    return _subject_id(admin)


class EngineCall:
    """Runs a service call off the event loop with transient-failure retry."""

    def __init__(
        self,
        engine: Annotated[Engine, Depends(get_engine)],
        config: Annotated[GolbucksConfig, Depends(get_config)],
    ) -> None:
        self.engine = engine
        self.config = config

    async def __call__(self, func: Callable[..., T], *args, **kwargs) -> T:
        db = self.config.database
        return await run_db(
            run_with_retry,
            func,
            self.engine,
            *args,
            attempts=db.retry_attempts,
            base_delay=db.retry_base_delay,
            lock_timeout_ms=db.lock_timeout_ms,
            **kwargs,
        )
