"""Health check endpoint."""

from fastapi import APIRouter
from app.config import settings

router = APIRouter()


@router.get("/healthz", summary="Health check")
def health_check() -> dict[str, str]:
    """Report liveness and the deployment environment."""
    return {"status": "ok", "env": settings.flighttrack_env}
