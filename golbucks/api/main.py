"""
golbucks.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn golbucks.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from golbucks.api.deps import get_config, get_engine  # noqa: E402
from golbucks.api.routes.admin import router as admin_router  # noqa: E402
from golbucks.api.routes.bill_supports import router as bill_supports_router  # noqa: E402
from golbucks.api.routes.events import router as events_router  # noqa: E402
from golbucks.api.routes.golbucks import router as golbucks_router  # noqa: E402
from golbucks.api.routes.rewards import router as rewards_router  # noqa: E402
from golbucks.errors import GolbucksError  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: load config and warm the DB engine."""
    config = get_config()
    engine = get_engine()
    logger.info(
        "Golbucks API started (db=%s, daily=%d, bonus every %d days)",
        engine.url.database,
        config.rewards.daily_amount,
        config.rewards.bonus_days,
    )
    yield
    logger.info("Golbucks API shutting down")


app = FastAPI(
    title="Golbucks API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GolbucksError)
async def golbucks_error_handler(request: Request, exc: GolbucksError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.code, "detail": exc.message},
    )


# Mount routers
app.include_router(rewards_router, prefix="/api")
app.include_router(golbucks_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(bill_supports_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
