"""
golbucks.database.engine — Database Connection & Async Helper
==============================================================

Builds the SQLAlchemy :class:`Engine` every service receives explicitly.
There is no module-level engine: callers (the API, scripts, tests) create
one and pass it in.

The service layer is **synchronous**.  Async callers (FastAPI handlers) go
through :func:`run_db`, which ships the call to a worker thread with
``asyncio.to_thread()`` so a blocking row-lock wait never stalls the event
loop.

Usage::

    from golbucks.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    result = await run_db(streak_service.claim, engine, account_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, event

from golbucks.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None, **kwargs) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    PostgreSQL pools are sized for request handling:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    SQLite URLs get :func:`install_sqlite_write_lock` so writers serialize.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": 30},
            **kwargs,
        )
        install_sqlite_write_lock(engine)
    else:
        options = {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_pre_ping": True,   # Reconnect stale connections automatically
            "pool_timeout": 10,
            "pool_recycle": 3600,
        }
        options.update(kwargs)
        engine = create_engine(url, echo=False, **options)

    logger.info("Database engine created → %s", engine.url.render_as_string(hide_password=True))
    return engine


def install_sqlite_write_lock(engine: Engine) -> None:
    """Make every SQLite transaction start with ``BEGIN IMMEDIATE``.

    SQLite has no ``SELECT … FOR UPDATE``; taking the database write lock at
    BEGIN gives the same serialization for read-modify-write units of work.
    pysqlite's own transaction handling is disabled so SQLAlchemy controls
    BEGIN.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`golbucks.database.models`.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** service function on a background thread."""
    return await asyncio.to_thread(func, *args, **kwargs)
