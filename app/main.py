from __future__ import annotations

import contextlib
import logging
import time

from fastapi import FastAPI, Request

from app.api import api_router
from app.config import settings
from app.db import init_db

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger("flighttrack")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup; there is no background work to stop."""

    init_db()
    logger.info("Database initialized")
    if not settings.aeroapi_key:
        logger.warning("AeroAPI key is not configured; refresh passes will fail")
    yield


app = FastAPI(title="Flight Tracking Backend", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log basic request information for observability."""

    start_time = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "HTTP %s %s -> %s (%.2f ms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


app.include_router(api_router)


@app.get("/", summary="Root")
def read_root() -> dict[str, str]:
    return {"message": "Flight tracking backend is running"}
