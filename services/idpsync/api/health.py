"""
Health check endpoints for the idpsync API server.

Provides /health (liveness) and /ready (readiness) endpoints.
"""

from fastapi import APIRouter, Response, status

from idpsync.db.session import get_db_health
from idpsync.logging_config import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health", status_code=status.HTTP_200_OK)
def health() -> dict[str, str]:
    """
    Liveness probe endpoint.

    Returns 200 if the API server is running.
    """
    return {"status": "healthy"}


@router.get("/ready", status_code=status.HTTP_200_OK)
def ready(response: Response) -> dict[str, str | dict[str, str]]:
    """
    Readiness probe endpoint.

    Checks database connectivity before returning 200.
    """
    db_healthy = get_db_health()
    checks = {"database": "healthy" if db_healthy else "unhealthy"}

    if not db_healthy:
        logger.warning("Readiness check failed", checks=checks)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not ready", "checks": checks}

    return {"status": "ready", "checks": checks}
